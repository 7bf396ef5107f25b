#  SPDX-License-Identifier: MPL-2.0
#  Copyright 2020-2022 John Mille <john@compose-x.io>

"""
Console script for ecs_webstack.
"""

import argparse
import sys

import yaml
from cfn_flip.yaml_dumper import LongCleanDumper
from tabulate import tabulate

from ecs_webstack import __version__
from ecs_webstack.common.logging import LOG, VALID_LEVELS, set_log_level
from ecs_webstack.common.settings import WebStackSettings
from ecs_webstack.exceptions import ConfigurationError
from ecs_webstack.webstack import deploy, plan, render


class ArgparseHelper(argparse._HelpAction):
    """
    Used to help print top level '--help' arguments from argparse
    when used with subparsers
    """

    def __call__(self, parser, namespace, values, option_string=None):
        parser.print_help()
        print()
        subparsers_actions = [
            action
            for action in parser._actions
            if isinstance(action, argparse._SubParsersAction)
        ]
        for subparsers_action in subparsers_actions:
            for choice, subparser in list(subparsers_action.choices.items()):
                if choice in [
                    cmd["name"] for cmd in WebStackSettings.active_commands
                ] or choice in [
                    cmd["name"] for cmd in WebStackSettings.validation_commands
                ]:
                    print(f"Command '{choice}'")
                    print(subparser.format_usage())
        parser.exit()


def main_parser():
    """
    Console script for ecs_webstack.
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "-h",
        "--help",
        action=ArgparseHelper,
        help="show this help message and exit",
    )

    cmd_parsers = parser.add_subparsers(
        dest=WebStackSettings.command_arg, help="Command to execute."
    )
    base_command_parser = argparse.ArgumentParser(add_help=False)
    files_parser = argparse.ArgumentParser(add_help=False)
    files_parser.add_argument(
        "-f",
        "--webstack-file",
        dest=WebStackSettings.input_file_arg,
        required=True,
        help="Path to the web stack definition file",
    )
    files_parser.add_argument(
        "--loglevel", type=str, help="Log level. Defaults to INFO", required=False
    )
    base_command_parser.add_argument(
        "-d",
        "--output-dir",
        required=False,
        help="Output directory for the template and the state file.",
        type=str,
        dest=WebStackSettings.output_dir_arg,
        default=WebStackSettings.default_output_dir,
    )
    base_command_parser.add_argument(
        "-n",
        "--name",
        help="Name of the deployment. Defaults to x-webstack.Name or the domain name",
        required=False,
        type=str,
        dest=WebStackSettings.name_arg,
    )
    base_command_parser.add_argument(
        "--format",
        help="Defines the format you want to use.",
        type=str,
        dest=WebStackSettings.format_arg,
        choices=WebStackSettings.allowed_formats,
        default=WebStackSettings.default_format,
    )
    base_command_parser.add_argument(
        "--region",
        required=False,
        dest=WebStackSettings.region_arg,
        help="Specify the region you want to deploy to. "
        "Defaults to the region from config or environment vars",
    )
    base_command_parser.add_argument(
        "--role-arn",
        dest=WebStackSettings.arn_arg,
        help="Allow you to run API calls using a specific IAM role, within same or for cross-account",
        required=False,
    )
    base_command_parser.add_argument(
        "--max-workers",
        dest=WebStackSettings.workers_arg,
        type=int,
        default=4,
        help="How many resources can be provisioned at the same time",
    )
    for command in WebStackSettings.active_commands:
        cmd_parsers.add_parser(
            name=command["name"],
            help=command["help"],
            parents=[base_command_parser, files_parser],
        )
    for command in WebStackSettings.validation_commands:
        cmd_parsers.add_parser(
            name=command["name"], help=command["help"], parents=[files_parser]
        )

    for command in WebStackSettings.neutral_commands:
        cmd_parsers.add_parser(name=command["name"], help=command["help"])
    return parser


def print_urls(urls: dict) -> None:
    print(tabulate(list(urls.items()), ["Name", "URL"], tablefmt="rst"))


def main(argv=None):
    """
    Main entry point for CLI
    :return: status code
    """
    parser = main_parser()
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        parser.print_help()
        return 0
    args = parser.parse_args(argv)
    command = getattr(args, WebStackSettings.command_arg)
    if command == "version":
        print("ECS WebStack", __version__)
        return 0
    if getattr(args, "loglevel", None) and not set_log_level(args.loglevel):
        print(f"Log level value {args.loglevel} is invalid. Must me one of {VALID_LEVELS}")
    LOG.debug(args)
    try:
        settings = WebStackSettings(**vars(args))
        LOG.debug(settings)
        if command == WebStackSettings.config_render_arg:
            print(yaml.dump(settings.content, Dumper=LongCleanDumper))
        elif command == WebStackSettings.render_arg:
            render(settings)
        elif command == WebStackSettings.plan_arg:
            print(
                tabulate(
                    plan(settings),
                    ["Wave", "LogicalResourceId", "ResourceType", "Action"],
                    tablefmt="rst",
                )
            )
        elif command == WebStackSettings.deploy_arg:
            report, urls = deploy(settings)
            print(
                tabulate(
                    report.rows(),
                    ["LogicalResourceId", "ResourceType", "Status", "Detail"],
                    tablefmt="rst",
                )
            )
            if report.degraded:
                LOG.warning(
                    f"{settings.name} - certificate not validated. Only the HTTP listener, "
                    "redirecting to HTTPS, is available"
                )
            elif report.succeeded:
                print_urls(urls)
            return report.exit_code
    except ConfigurationError as error:
        LOG.error(error)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())  # pragma: no cover
