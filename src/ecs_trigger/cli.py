"""CLI for discovering and triggering ECS scheduled tasks."""

import argparse
import json
import sys
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

from .aws_clients import AWSClients, create_aws_clients
from .discovery import (
    discover_clusters,
    discover_scheduled_tasks,
    explain_missing_rule,
    find_cluster_by_name,
    find_scheduled_task_by_rule,
)
from .errors import EcsTriggerError
from .interactive import confirm_execution, select_cluster, select_scheduled_task
from .models import CLIOptions, ClusterInfo, ScheduledTask
from .runner import run_scheduled_task


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecs-trigger",
        description="Discover and trigger AWS ECS scheduled tasks",
        epilog=(
            "examples:\n"
            "  ecs-trigger --profile production                                     interactive mode\n"
            "  ecs-trigger --profile production --cluster my-cluster --rule my-rule  direct execution\n"
            "  ecs-trigger --profile production --list                              list scheduled tasks as JSON"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("-p", "--profile", required=True, help="AWS CLI profile")
    parser.add_argument(
        "-r", "--region", default=None, help="AWS region (default: from profile, else us-east-1)"
    )
    parser.add_argument("-c", "--cluster", help="Cluster name or ARN (skips cluster selection)")
    parser.add_argument("--rule", help="Rule or schedule name (skips task selection)")
    parser.add_argument(
        "-l",
        "--list",
        action="store_true",
        dest="list_only",
        help="Output clusters and scheduled tasks as JSON, don't execute",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    return parser


def format_list_output(clusters: list[ClusterInfo], tasks: list[ScheduledTask]) -> dict:
    return {
        "clusters": [
            {
                "name": c.cluster_name,
                "arn": c.cluster_arn,
                "status": c.status,
                "runningTasks": c.running_tasks_count,
                "pendingTasks": c.pending_tasks_count,
                "services": c.active_services_count,
            }
            for c in clusters
        ],
        "scheduledTasks": [
            {
                "ruleName": t.rule_name,
                "ruleArn": t.rule_arn,
                "schedule": t.schedule_expression,
                "cluster": t.cluster_arn,
                "taskDefinition": t.task_definition_arn,
                "launchType": t.launch_type.value if t.launch_type else None,
                "enabled": t.enabled,
                "source": t.source,
            }
            for t in tasks
        ],
    }


def handle_list_mode(clients: AWSClients, options: CLIOptions) -> None:
    """Print every cluster and scheduled task as JSON."""
    if options.verbose:
        print("[ecs_trigger] Discovering clusters and scheduled tasks...", file=sys.stderr)

    cluster_arn: Optional[str] = None
    if options.cluster:
        cluster_arn = find_cluster_by_name(clients, options.profile, options.cluster).cluster_arn

    with ThreadPoolExecutor(max_workers=2) as executor:
        clusters_future = executor.submit(discover_clusters, clients, options.profile)
        tasks_future = executor.submit(
            discover_scheduled_tasks, clients, options.profile, cluster_arn, options.verbose
        )
        clusters = clusters_future.result()
        tasks = tasks_future.result()

    print(json.dumps(format_list_output(clusters, tasks), indent=2))


def handle_execute_mode(clients: AWSClients, options: CLIOptions) -> None:
    """Resolve a cluster and scheduled task, then run the task once."""
    verbose = options.verbose

    if options.cluster:
        if verbose:
            print(f"[ecs_trigger] Looking up cluster: {options.cluster}", file=sys.stderr)
        cluster = find_cluster_by_name(clients, options.profile, options.cluster)
    else:
        if verbose:
            print("[ecs_trigger] Discovering clusters...", file=sys.stderr)
        cluster = select_cluster(discover_clusters(clients, options.profile))

    if verbose:
        print(f"[ecs_trigger] Selected cluster: {cluster.cluster_name}", file=sys.stderr)

    if options.rule:
        if verbose:
            print(f"[ecs_trigger] Looking up rule: {options.rule}", file=sys.stderr)
        task = find_scheduled_task_by_rule(
            clients, options.profile, options.rule, cluster.cluster_arn, verbose
        )
        if task is None:
            raise explain_missing_rule(clients, options.rule, cluster, verbose)
    else:
        if verbose:
            print("[ecs_trigger] Discovering scheduled tasks...", file=sys.stderr)
        task = select_scheduled_task(
            discover_scheduled_tasks(clients, options.profile, cluster.cluster_arn, verbose)
        )

    if verbose:
        print(f"[ecs_trigger] Selected task: {task.rule_name} ({task.source})", file=sys.stderr)

    # Only confirm when something was picked interactively
    if not options.cluster or not options.rule:
        if not confirm_execution(task):
            print("Cancelled", file=sys.stderr)
            return

    if verbose:
        print("[ecs_trigger] Starting task...", file=sys.stderr)

    result = run_scheduled_task(clients, options.profile, task, verbose)

    print(json.dumps(result.to_json_dict(), indent=2))
    print(f"\nAWS Console: {result.console_url}", file=sys.stderr)


def run(options: CLIOptions) -> None:
    if options.verbose:
        print(f"[ecs_trigger] Using profile: {options.profile}", file=sys.stderr)
        if options.region:
            print(f"[ecs_trigger] Region override: {options.region}", file=sys.stderr)

    clients = create_aws_clients(options.profile, options.region)

    if options.verbose:
        print(f"[ecs_trigger] AWS clients initialized ({clients.region})", file=sys.stderr)

    if options.list_only:
        handle_list_mode(clients, options)
        return

    handle_execute_mode(clients, options)


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    options = CLIOptions(
        profile=args.profile,
        region=args.region,
        cluster=args.cluster,
        rule=args.rule,
        list_only=args.list_only,
        verbose=args.verbose,
    )

    try:
        run(options)
    except EcsTriggerError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        print("Cancelled", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
