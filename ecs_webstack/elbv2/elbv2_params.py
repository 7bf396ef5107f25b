#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Logical names and attributes of the shared load balancing resources.
"""

LB_SG_T = "LoadBalancerSecurityGroup"
PUBLIC_HTTP_INGRESS_T = "PublicHttpIngress"
PUBLIC_HTTPS_INGRESS_T = "PublicHttpsIngress"
LB_T = "LoadBalancer"
HTTP_LISTENER_T = "HttpListener"
HTTPS_LISTENER_T = "HttpsListener"

LB_DNS_NAME = "DNSName"
LB_DNS_ZONE_ID = "CanonicalHostedZoneID"
SG_GROUP_ID = "GroupId"

HTTP_PORT = 80
HTTPS_PORT = 443
PUBLIC_CIDR = "0.0.0.0/0"
