#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Walks the DeploymentGraph and converges each resource, in dependency order and with bounded
parallelism. A resource is only submitted once all the resources it depends on are ready.
"""

from __future__ import annotations

from concurrent.futures import FIRST_COMPLETED, ThreadPoolExecutor, wait
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ecs_webstack.common.state import StateStore
    from ecs_webstack.graph import DeploymentGraph
    from ecs_webstack.providers import (
        CertificateAuthority,
        DnsProvider,
        ResourceProvider,
    )

from ecs_webstack.acm.pipeline import CertificatePipeline
from ecs_webstack.acm.validation import DEFAULT_RECORD_TTL
from ecs_webstack.common import properties_checksum
from ecs_webstack.common.logging import LOG
from ecs_webstack.exceptions import (
    CertificateIssuanceError,
    ProvisioningError,
    ValidationTimeout,
    WebStackException,
)
from ecs_webstack.graph import NodeKind

DEFAULT_MAX_WORKERS = 4
NO_VALUE = "AWS::NoValue"
REGION = "AWS::Region"

# Resources which cannot be modified, a new one replaces the previous one.
REPLACE_ON_UPDATE = ["AWS::ECS::TaskDefinition"]


class NodeStatus:
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"
    FAILED = "failed"
    SKIPPED = "skipped"


class NodeResult:
    """
    :ivar str title: logical name of the resource
    :ivar str resource_type:
    :ivar str status: one of NodeStatus
    :ivar dict handle: set when the resource is ready
    :ivar WebStackException error: set when failed
    :ivar str blocked_by: the failed resource which prevented a skipped one to be created
    """

    def __init__(
        self,
        title: str,
        resource_type: str,
        status: str,
        handle: dict = None,
        error: WebStackException = None,
        blocked_by: str = None,
    ):
        self.title = title
        self.resource_type = resource_type
        self.status = status
        self.handle = handle
        self.error = error
        self.blocked_by = blocked_by

    def __repr__(self):
        return f"{self.title} ({self.resource_type}) {self.status}"

    @property
    def detail(self) -> str:
        if self.error:
            return str(self.error)
        if self.blocked_by:
            return f"blocked by {self.blocked_by}"
        if self.handle:
            return str(self.handle["Ref"])
        return ""


class ProvisioningReport:
    """
    Outcome of a provisioning run, one NodeResult per resource of the graph.
    """

    def __init__(self, name: str):
        self.name = name
        self.results = {}
        self.orphans = []

    def add(self, result: NodeResult) -> None:
        self.results[result.title] = result

    def of_status(self, status: str) -> list:
        return [result for result in self.results.values() if result.status == status]

    @property
    def failures(self) -> list:
        return self.of_status(NodeStatus.FAILED)

    @property
    def skipped(self) -> list:
        return self.of_status(NodeStatus.SKIPPED)

    @property
    def succeeded(self) -> bool:
        return not self.failures

    @property
    def degraded(self) -> bool:
        """
        Only the certificate failed: the plain listener is up, redirecting, the secure one is not.
        """
        return bool(self.failures) and all(
            isinstance(result.error, (CertificateIssuanceError, ValidationTimeout))
            for result in self.failures
        )

    @property
    def exit_code(self) -> int:
        if self.succeeded:
            return 0
        if self.degraded:
            return 2
        return 1

    def rows(self) -> list:
        rows = [
            [result.title, result.resource_type, result.status, result.detail]
            for result in self.results.values()
        ]
        rows += [[title, "", "orphan", "not in the deployment anymore"] for title in self.orphans]
        return rows


def resolve(value, handles: dict, region: str):
    """
    Replaces the Ref, Fn::GetAtt and Fn::Join in the CFN properties with their values,
    from the handles of the resources already provisioned.

    :param value: properties as rendered by troposphere
    :param dict handles: the resources handles, by logical name
    :param str region: value of AWS::Region
    """
    if isinstance(value, dict):
        if len(value) == 1 and "Ref" in value:
            name = value["Ref"]
            if name == REGION:
                return region
            if name == NO_VALUE:
                return NO_VALUE
            return get_attribute(handles, name, "Ref")
        if len(value) == 1 and "Fn::GetAtt" in value:
            name, attribute = value["Fn::GetAtt"]
            return get_attribute(handles, name, attribute)
        if len(value) == 1 and "Fn::Join" in value:
            delimiter, items = value["Fn::Join"]
            return delimiter.join(
                str(item) for item in resolve(items, handles, region)
            )
        resolved = {}
        for key, sub_value in value.items():
            sub_resolved = resolve(sub_value, handles, region)
            if sub_resolved != NO_VALUE:
                resolved[key] = sub_resolved
        return resolved
    elif isinstance(value, list):
        return [
            item
            for item in (resolve(sub_value, handles, region) for sub_value in value)
            if item != NO_VALUE
        ]
    return value


def get_attribute(handles: dict, name: str, attribute: str):
    if name not in handles:
        raise ProvisioningError(f"No handle for {name}", name)
    if attribute not in handles[name]:
        raise ProvisioningError(f"{name} has no attribute {attribute}", name)
    return handles[name][attribute]


def node_properties(graph: DeploymentGraph, title: str) -> tuple:
    """
    :return: the CFN type and properties of the resource
    """
    definition = graph.resource(title).to_dict()
    return definition["Type"], definition.get("Properties", {})


def define_plan(graph: DeploymentGraph, state: StateStore) -> list:
    """
    What a run would do, without calling any provider. Compares the desired properties with the
    ones recorded in state.

    :return: rows of wave, logical name, type, action
    :rtype: list
    """
    rows = []
    for index, wave in enumerate(graph.waves(), start=1):
        for title in wave:
            resource_type, properties = node_properties(graph, title)
            recorded = state.get(title)
            if not recorded:
                action = "create"
            elif recorded["DesiredChecksum"] != properties_checksum(properties):
                action = "update"
            else:
                action = "unchanged"
            rows.append([index, title, resource_type, action])
    for title in state.titles():
        if title not in graph:
            rows.append(["", title, state.get(title)["Type"], "orphan"])
    return rows


class Provisioner:
    """
    :ivar DeploymentGraph graph:
    :ivar ResourceProvider resources:
    :ivar CertificateAuthority authority:
    :ivar DnsProvider dns:
    :ivar StateStore state:
    :ivar CertificatePipeline pipeline: once the certificate node ran
    """

    def __init__(
        self,
        graph: DeploymentGraph,
        resources: ResourceProvider,
        authority: CertificateAuthority,
        dns: DnsProvider,
        state: StateStore,
        region: str,
        max_workers: int = DEFAULT_MAX_WORKERS,
        validation_timeout: float = None,
        record_ttl: int = DEFAULT_RECORD_TTL,
    ):
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.graph = graph
        self.resources = resources
        self.authority = authority
        self.dns = dns
        self.state = state
        self.region = region
        self.max_workers = max_workers
        self.validation_timeout = validation_timeout
        self.record_ttl = record_ttl
        self.pipeline = None

    def run(self) -> ProvisioningReport:
        """
        :return: the report of the run. Failures are reported, not raised.
        """
        report = ProvisioningReport(self.graph.name)
        handles = {}
        pending = self.graph.ordered()
        running = {}
        with ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="webstack"
        ) as executor:
            while pending or running:
                for title in [
                    title
                    for title in pending
                    if all(
                        upstream in handles
                        for upstream in self.graph.predecessors(title)
                    )
                ]:
                    pending.remove(title)
                    upstream_handles = {
                        name: handles[name] for name in self.graph.ancestors(title)
                    }
                    running[executor.submit(self.converge, title, upstream_handles)] = title
                if not running:
                    break
                done, _ = wait(running, return_when=FIRST_COMPLETED)
                for future in done:
                    title = running.pop(future)
                    try:
                        result = future.result()
                    except WebStackException as error:
                        self.fail(title, error, pending, report)
                    except Exception as error:
                        LOG.exception(error)
                        self.fail(
                            title,
                            ProvisioningError(
                                str(error),
                                title,
                                node_properties(self.graph, title)[0],
                            ),
                            pending,
                            report,
                        )
                    else:
                        handles[title] = result.handle
                        report.add(result)
        report.orphans = [
            title for title in self.state.titles() if title not in self.graph
        ]
        for orphan in report.orphans:
            LOG.warning(f"{orphan} is recorded in state but no longer in the deployment")
        return report

    def fail(
        self,
        title: str,
        error: WebStackException,
        pending: list,
        report: ProvisioningReport,
    ):
        LOG.error(f"{title} - {error}")
        report.add(
            NodeResult(
                title,
                node_properties(self.graph, title)[0],
                NodeStatus.FAILED,
                error=error,
            )
        )
        self.skip_descendants(title, pending, report)

    def skip_descendants(self, failed: str, pending: list, report: ProvisioningReport):
        for title in [
            title for title in pending if title in self.graph.descendants(failed)
        ]:
            pending.remove(title)
            LOG.warning(f"{title} - skipped, {failed} failed")
            report.add(
                NodeResult(
                    title,
                    node_properties(self.graph, title)[0],
                    NodeStatus.SKIPPED,
                    blocked_by=failed,
                )
            )

    def converge(self, title: str, handles: dict = None) -> NodeResult:
        """
        Creates, updates or leaves the resource untouched depending on the recorded state.

        :param str title: logical name of the resource
        :param dict handles: the handles of the resources it depends on
        :raises WebStackException: the resource could not converge
        """
        handles = handles or {}
        kind = self.graph.kind(title)
        resource_type, properties = node_properties(self.graph, title)
        desired_checksum = properties_checksum(properties)
        if kind == NodeKind.CERTIFICATE:
            return self.converge_certificate(
                title, resource_type, properties, desired_checksum
            )
        resolved = resolve(properties, handles, self.region)
        checksum = properties_checksum(resolved)
        recorded = self.state.get(title)
        if (
            recorded
            and recorded["Type"] == resource_type
            and recorded["Checksum"] == checksum
        ):
            LOG.info(f"{title} - unchanged")
            handle = recorded["Handle"]
            status = NodeStatus.UNCHANGED
        elif kind == NodeKind.DNS_ALIAS:
            handle = self.dns.upsert_alias(
                resolved["Name"],
                resolved["AliasTarget"]["DNSName"],
                resolved["AliasTarget"]["HostedZoneId"],
                resolved["AliasTarget"].get("EvaluateTargetHealth", True),
            )
            status = NodeStatus.UPDATED if recorded else NodeStatus.CREATED
        elif recorded and resource_type not in REPLACE_ON_UPDATE:
            handle = self.resources.update(
                resource_type, title, recorded["Handle"]["Ref"], resolved
            )
            status = NodeStatus.UPDATED
        else:
            handle = self.resources.create(resource_type, title, resolved)
            status = NodeStatus.UPDATED if recorded else NodeStatus.CREATED
        self.state.put(title, resource_type, handle, checksum, desired_checksum)
        if kind == NodeKind.SECURE_LISTENER and self.pipeline:
            self.pipeline.attach(handle)
        return NodeResult(title, resource_type, status, handle=handle)

    def converge_certificate(
        self, title: str, resource_type: str, properties: dict, desired_checksum: str
    ) -> NodeResult:
        """
        The certificate goes through its pipeline on every run. An issued certificate has no
        pending challenge and validates straight away.
        """
        domain_name = properties["DomainName"]
        self.pipeline = CertificatePipeline(
            domain_name,
            self.authority,
            self.dns,
            alternative_names=[
                name
                for name in properties.get("SubjectAlternativeNames", [])
                if name != domain_name
            ],
            validation_timeout=self.validation_timeout,
            record_ttl=self.record_ttl,
        )
        handle = self.pipeline.run()
        recorded = self.state.get(title)
        if recorded and recorded["Handle"]["Ref"] == handle["Ref"]:
            status = NodeStatus.UNCHANGED
        else:
            status = NodeStatus.UPDATED if recorded else NodeStatus.CREATED
        self.state.put(
            title, resource_type, handle, properties_checksum(handle), desired_checksum
        )
        return NodeResult(title, resource_type, status, handle=handle)
