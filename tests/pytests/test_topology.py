#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

from conftest import HOSTED_ZONE_ID, get_settings
from pytest import raises

from ecs_webstack.exceptions import ConfigurationError
from ecs_webstack.graph import NodeKind
from ecs_webstack.topology import TopologyBuilder


def build(settings, network):
    builder = TopologyBuilder(settings, network, HOSTED_ZONE_ID)
    return builder.build(), builder


def test_two_services_graph(todo_settings, network):
    graph, builder = build(todo_settings, network)
    assert graph.sealed
    assert len(graph) == 24
    assert sorted(graph.nodes_of_kind(NodeKind.TARGET_GROUP)) == [
        "apiTargetGroup",
        "appTargetGroup",
    ]
    assert sorted(graph.nodes_of_kind(NodeKind.ROUTING_RULE)) == ["apiListenerRule"]
    assert sorted(graph.nodes_of_kind(NodeKind.SERVICE)) == ["apiService", "appService"]
    assert sorted(graph.nodes_of_kind(NodeKind.SCALING_POLICY)) == [
        "apiScaleInPolicy",
        "appScaleInPolicy",
    ]
    assert graph.service_of("apiService") == "api"
    assert graph.service_of("LoadBalancer") is None

    assert graph.predecessors("HttpListener") == ["LoadBalancer"]
    assert graph.predecessors("HttpsListener") == [
        "Certificate",
        "LoadBalancer",
        "appTargetGroup",
    ]
    assert graph.predecessors("DnsAliasRecord") == ["LoadBalancer"]
    for service in ["apiService", "appService"]:
        assert graph.has_edge("HttpListener", service)
        assert graph.has_edge("HttpsListener", service)
        assert graph.has_edge("Cluster", service)
    assert graph.has_edge("apiListenerRule", "apiService")
    assert not graph.has_edge("Certificate", "HttpListener")
    assert "HttpListener" not in graph.descendants("Certificate")
    assert graph.predecessors("apiScalableTarget") == ["Cluster", "apiService"]
    assert graph.predecessors("apiScaleInPolicy") == ["apiScalableTarget"]


def test_listeners_definition(todo_settings, network):
    graph, _ = build(todo_settings, network)
    plain = graph.resource("HttpListener").to_dict()["Properties"]
    assert plain["Port"] == 80
    assert plain["DefaultActions"][0]["Type"] == "redirect"
    assert plain["DefaultActions"][0]["RedirectConfig"]["StatusCode"] == "HTTP_301"

    secure = graph.resource("HttpsListener").to_dict()["Properties"]
    assert secure["Port"] == 443
    assert secure["Certificates"] == [{"CertificateArn": {"Ref": "Certificate"}}]
    assert secure["DefaultActions"] == [
        {"Type": "forward", "TargetGroupArn": {"Ref": "appTargetGroup"}}
    ]
    assert "SslPolicy" not in secure

    rule = graph.resource("apiListenerRule").to_dict()["Properties"]
    assert rule["Priority"] == 10
    assert rule["ListenerArn"] == {"Ref": "HttpsListener"}
    assert rule["Conditions"][0]["PathPatternConfig"]["Values"] == ["/api/*"]


def test_services_definition(todo_settings, network):
    graph, _ = build(todo_settings, network)
    target_group = graph.resource("apiTargetGroup").to_dict()["Properties"]
    assert target_group["HealthCheckPath"] == "/api/"
    assert target_group["HealthCheckIntervalSeconds"] == 5
    assert target_group["TargetType"] == "ip"
    assert target_group["VpcId"] == network.vpc_id

    task_definition = graph.resource("apiTaskDefinition").to_dict()["Properties"]
    assert task_definition["Family"] == "todo-api"
    assert task_definition["RuntimePlatform"]["CpuArchitecture"] == "ARM64"
    assert task_definition["TaskRoleArn"] == {"Fn::GetAtt": ["apiTaskRole", "Arn"]}
    assert task_definition["ContainerDefinitions"][0]["Environment"] == [
        {"Name": "PORT", "Value": "80"},
        {"Name": "DYNAMODB_TABLE_NAME", "Value": {"Ref": "todosTable"}},
    ]
    assert "TaskRoleArn" not in graph.resource("appTaskDefinition").to_dict()["Properties"]

    service = graph.resource("apiService").to_dict()["Properties"]
    assert service["ServiceName"] == "api"
    assert service["LaunchType"] == "FARGATE"
    assert service["NetworkConfiguration"]["AwsvpcConfiguration"]["Subnets"] == (
        network.subnet_ids
    )

    policy = graph.resource("apiScaleInPolicy").to_dict()["Properties"]
    adjustments = policy["StepScalingPolicyConfiguration"]["StepAdjustments"]
    assert all(step["ScalingAdjustment"] < 0 for step in adjustments)


def test_table_access(todo_settings, network):
    graph, _ = build(todo_settings, network)
    assert graph.predecessors("apiTaskRole") == ["todosTable"]
    assert "todosTable" in graph.predecessors("apiTaskDefinition")
    assert "apiTaskRole" in graph.predecessors("apiTaskDefinition")
    assert "appTaskRole" not in graph
    role = graph.resource("apiTaskRole").to_dict()["Properties"]
    statement = role["Policies"][0]["PolicyDocument"]["Statement"][0]
    assert "dynamodb:PutItem" in statement["Action"]
    assert {"Fn::GetAtt": ["todosTable", "Arn"]} in statement["Resource"]


def test_single_service(single_content, network):
    graph, builder = build(get_settings(single_content), network)
    assert len(graph) == 17
    assert graph.nodes_of_kind(NodeKind.ROUTING_RULE) == []
    assert "ServicePort8080Ingress" in graph.predecessors("websiteService")
    secure = graph.resource("HttpsListener").to_dict()["Properties"]
    assert secure["SslPolicy"] == "ELBSecurityPolicy-TLS13-1-2-2021-06"
    certificate = graph.resource("Certificate").to_dict()["Properties"]
    assert certificate["SubjectAlternativeNames"] == ["www.example.com", "example.com"]
    assert builder.urls() == {
        "PublicUrl": "https://www.example.com",
        "website": "https://www.example.com",
    }


def test_template(todo_settings, network):
    graph, builder = build(todo_settings, network)
    template = graph.to_dict(outputs=builder.outputs())
    resources = template["Resources"]
    assert len(resources) == 24
    assert resources["HttpsListener"]["DependsOn"] == [
        "Certificate",
        "LoadBalancer",
        "appTargetGroup",
    ]
    assert "DependsOn" not in resources["Certificate"]
    assert template["Outputs"]["PublicUrl"]["Value"] == "https://todo.example.com"
    assert template["Outputs"]["apiUrl"]["Value"] == "https://todo.example.com/api"
    assert "DependsOn" not in graph.resource("HttpsListener").to_dict()


def test_urls(todo_settings, network):
    _, builder = build(todo_settings, network)
    assert builder.urls() == {
        "PublicUrl": "https://todo.example.com",
        "app": "https://todo.example.com",
        "api": "https://todo.example.com/api",
    }


def test_ambiguous_routing_creates_nothing(todo_content, network):
    todo_content["services"]["admin"] = {
        "image": "nginx",
        "x-routing": {"PathPattern": "/api/*"},
    }
    builder = TopologyBuilder(get_settings(todo_content), network, HOSTED_ZONE_ID)
    with raises(ConfigurationError):
        builder.build()
    assert builder.shared is None
