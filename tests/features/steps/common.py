#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

import json
import tempfile
from os import path

import yaml
from behave import given, then
from pytest import raises

from ecs_webstack.common.settings import WebStackSettings, load_input_file
from ecs_webstack.common.state import StateStore
from ecs_webstack.exceptions import ConfigurationError
from ecs_webstack.webstack import generate_graph, plan, render


def here():
    return path.abspath(path.dirname(__file__))


def get_settings(context, file_format="json") -> WebStackSettings:
    return WebStackSettings(
        content=context.content,
        **{
            WebStackSettings.command_arg: WebStackSettings.render_arg,
            WebStackSettings.format_arg: file_format,
            WebStackSettings.output_dir_arg: tempfile.mkdtemp(prefix="webstack-"),
            WebStackSettings.region_arg: "eu-west-1",
        },
    )


@given("I use {file_path} as my web stack file")
def step_impl(context, file_path):
    """
    Function to import the web stack file from use-cases.

    :param context:
    :param str file_path:
    :return:
    """
    context.content = load_input_file(path.abspath(f"{here()}/../../../{file_path}"))


@given("I add service {service_name} routed on {path_pattern}")
def step_impl(context, service_name, path_pattern):
    context.content["services"][service_name] = {
        "image": "public.ecr.aws/nginx/nginx:latest",
        "x-routing": {"PathPattern": path_pattern},
    }


@then("I render the template to {output_format}")
def step_impl(context, output_format):
    context.settings = get_settings(context, output_format)
    context.template_file = render(context.settings)


@then("the template has {count:d} resources")
def step_impl(context, count):
    with open(context.template_file) as template_fd:
        if context.settings.format == "yaml":
            template = yaml.safe_load(template_fd)
        else:
            template = json.load(template_fd)
    assert len(template["Resources"]) == count


@then("I build the deployment graph")
def step_impl(context):
    context.settings = get_settings(context)
    context.graph, context.builder = generate_graph(context.settings)


@then("{listener} forwards to {target_group} by default")
def step_impl(context, listener, target_group):
    props = context.graph.resource(listener).to_dict()["Properties"]
    assert props["DefaultActions"][0]["TargetGroupArn"] == {"Ref": target_group}


@then("{service_name} is routed on {path_pattern} with priority {priority:d}")
def step_impl(context, service_name, path_pattern, priority):
    rule = context.graph.resource(f"{service_name}ListenerRule").to_dict()["Properties"]
    assert rule["Priority"] == priority
    assert rule["Conditions"][0]["PathPatternConfig"]["Values"] == [path_pattern]
    assert context.graph.has_edge(f"{service_name}ListenerRule", f"{service_name}Service")


@then("{downstream} does not depend on {upstream}")
def step_impl(context, downstream, upstream):
    assert upstream not in context.graph.ancestors(downstream)


@then("every resource is planned for creation")
def step_impl(context):
    rows = plan(context.settings, StateStore())
    assert len(rows) == len(context.graph)
    assert {row[3] for row in rows} == {"create"}


@then("building the deployment graph fails")
def step_impl(context):
    context.settings = get_settings(context)
    with raises(ConfigurationError):
        generate_graph(context.settings)
