#!/usr/bin/env python3
"""
awsag - Azure AD to AWS IAM Identity Center assignment validator

A CLI tool for checking that Azure AD group assignments to AWS permission sets
are synchronized, provisioned and working.
"""
import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer
from rich.console import Console
from rich.table import Table

from . import __version__
from .aws_clients.identity_center import IdentityCenterClient
from .utils.config import AppConfig, Config
from .utils.error_handler import ConfigurationError, handle_cli_error
from .utils.logging_config import LoggingConfig, setup_logging
from .validation.models import AccountAssignment, GroupAssignment, ValidationResult
from .validation.service import ValidationService

app = typer.Typer(
    help="Validate Azure AD group assignments to AWS IAM Identity Center permission sets.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

OUTPUT_FORMATS = ("table", "json")


@app.callback()
def main(
    ctx: typer.Context,
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="AWS profile to use"),
    region: Optional[str] = typer.Option(None, "--region", "-r", help="AWS region to use"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Validate Azure AD group assignments to AWS IAM Identity Center permission sets."""
    ctx.obj = {"profile": profile, "region": region, "verbose": verbose}


def apply_overrides(app_config: AppConfig, options: Dict[str, Any]) -> AppConfig:
    """Apply the global --profile and --region options."""
    if options.get("profile"):
        app_config.aws.profile = options["profile"]
    if options.get("region"):
        app_config.aws.region = options["region"]
    return app_config


def load_config(ctx: typer.Context) -> AppConfig:
    """Load the application configuration and set up logging."""
    options = ctx.obj or {}
    app_config = apply_overrides(Config().load_app_config(), options)

    setup_logging(LoggingConfig.from_settings(app_config.logging, options.get("verbose", False)))
    return app_config


def build_service(app_config: AppConfig) -> ValidationService:
    """Create the validation service, refusing incomplete configuration."""
    missing = app_config.validate()
    if missing:
        raise ConfigurationError("Configuration is incomplete", missing=missing)
    return ValidationService.from_config(app_config)


def build_aws_client(app_config: AppConfig) -> IdentityCenterClient:
    """Create the Identity Center client, refusing incomplete AWS configuration."""
    missing = app_config.validate(sections=("aws",))
    if missing:
        raise ConfigurationError("AWS configuration is incomplete", missing=missing)
    return IdentityCenterClient.from_config(app_config)


def validate_output_format(output_format: str) -> str:
    output_format = output_format.lower()
    if output_format not in OUTPUT_FORMATS:
        console.print(
            f"[red]Error: Invalid output format '{output_format}'. "
            f"Use one of: {', '.join(OUTPUT_FORMATS)}[/red]"
        )
        raise typer.Exit(1)
    return output_format


def print_json(data: Any) -> None:
    console.print_json(json.dumps(data, default=str))


def _assignment(
    group_id: str, account_id: str, permission_set_arn: str, group_name: str
) -> GroupAssignment:
    return GroupAssignment(
        azure_group_id=group_id,
        azure_group_name=group_name,
        aws_account_id=account_id,
        permission_set_arn=permission_set_arn,
    )


def _principal_type(assignment: AccountAssignment) -> str:
    return getattr(assignment.principal_type, "value", assignment.principal_type)


def _mark(value: bool) -> str:
    return "[green]✓[/green]" if value else "[red]✗[/red]"


def _print_messages(errors: List[str], warnings: Optional[List[str]] = None) -> None:
    for error in errors:
        console.print(f"[red]✗ {error}[/red]")
    for warning in warnings or []:
        console.print(f"[yellow]⚠ {warning}[/yellow]")


def _display_validation(assignment: GroupAssignment, result: ValidationResult) -> None:
    table = Table(title=f"Validation: {assignment.key}")
    table.add_column("Check", style="cyan")
    table.add_column("Result")
    table.add_column("Details")

    details = result.details
    if details.azure_group is not None:
        check = details.azure_group
        table.add_row(
            "Azure group",
            _mark(check.exists and check.is_active and check.is_security_group),
            f"exists={check.exists}, active={check.is_active}, "
            f"security={check.is_security_group}, members={check.member_count}",
        )
    if details.synchronization is not None:
        check = details.synchronization
        table.add_row(
            "Synchronization",
            _mark(check.is_synced),
            f"AWS group: {check.aws_group_id or 'N/A'}",
        )
    if details.permission_set is not None:
        check = details.permission_set
        table.add_row(
            "Permission set",
            _mark(check.exists and check.is_provisioned),
            f"exists={check.exists}, provisioned={check.is_provisioned}, "
            f"policies={check.has_valid_policies}",
        )
    if details.assignment is not None:
        check = details.assignment
        table.add_row("Assignment", _mark(check.is_active), f"status: {check.status}")
    if details.functionality is not None:
        check = details.functionality
        table.add_row(
            "Functionality",
            _mark(check.can_authenticate and check.has_expected_permissions),
            f"authenticate={check.can_authenticate}, "
            f"permissions={check.has_expected_permissions}",
        )

    console.print(table)
    status = "[green]VALID[/green]" if result.is_valid else "[red]INVALID[/red]"
    console.print(f"\nOverall: {status}")
    _print_messages(result.errors, result.warnings)


@app.command()
def version():
    """Show the application version and exit."""
    console.print(f"awsag version: {__version__}")
    raise typer.Exit()


@app.command("validate")
def validate_command(
    ctx: typer.Context,
    group_id: str = typer.Option(..., "--group-id", "-g", help="Azure AD group object ID"),
    account_id: str = typer.Option(..., "--account-id", "-a", help="AWS account ID"),
    permission_set_arn: str = typer.Option(
        ..., "--permission-set-arn", "-s", help="Permission set ARN"
    ),
    group_name: str = typer.Option("", "--group-name", help="Azure AD group display name"),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Validate one group assignment end to end. Exits 1 when it is invalid."""
    output_format = validate_output_format(output_format)
    assignment = _assignment(group_id, account_id, permission_set_arn, group_name)
    try:
        service = build_service(load_config(ctx))
        result = asyncio.run(service.validate_assignment(assignment))
    except Exception as e:
        handle_cli_error(e, "validate", console)
        raise typer.Exit(1)

    if output_format == "json":
        print_json({"assignment": assignment.to_dict(), **result.to_dict()})
    else:
        _display_validation(assignment, result)

    if not result.is_valid:
        raise typer.Exit(1)


@app.command("test")
def functionality_test_command(
    ctx: typer.Context,
    group_id: str = typer.Option(..., "--group-id", "-g", help="Azure AD group object ID"),
    account_id: str = typer.Option(..., "--account-id", "-a", help="AWS account ID"),
    permission_set_arn: str = typer.Option(
        ..., "--permission-set-arn", "-s", help="Permission set ARN"
    ),
    group_name: str = typer.Option("", "--group-name", help="Azure AD group display name"),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Run the end-to-end functionality test with recommendations."""
    output_format = validate_output_format(output_format)
    assignment = _assignment(group_id, account_id, permission_set_arn, group_name)
    try:
        service = build_service(load_config(ctx))
        result = asyncio.run(service.test_assignment_functionality(assignment))
    except Exception as e:
        handle_cli_error(e, "test", console)
        raise typer.Exit(1)

    if output_format == "json":
        print_json(result.to_dict())
    else:
        table = Table(title=f"Functionality test: {assignment.key}")
        table.add_column("Check", style="cyan")
        table.add_column("Result")
        checks = result.test_results
        table.add_row("Group exists", _mark(checks.group_exists))
        table.add_row("Group synchronized", _mark(checks.group_synced))
        table.add_row("Permission set exists", _mark(checks.permission_set_exists))
        table.add_row("Assignment active", _mark(checks.assignment_active))
        table.add_row("End-to-end access", _mark(checks.end_to_end_access))
        console.print(table)

        _print_messages(result.errors)
        if result.recommendations:
            console.print("\n[bold]Recommendations:[/bold]")
            for recommendation in result.recommendations:
                console.print(f"  💡 {recommendation}")

    if not result.is_working:
        raise typer.Exit(1)


@app.command("sync-status")
def sync_status_command(
    ctx: typer.Context,
    group_id: str = typer.Argument(..., help="Azure AD group object ID"),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Compare an Azure AD group with its synchronized AWS group."""
    output_format = validate_output_format(output_format)
    try:
        service = build_service(load_config(ctx))
        status = asyncio.run(service.check_group_synchronization_status(group_id))
    except Exception as e:
        handle_cli_error(e, "sync-status", console)
        raise typer.Exit(1)

    if output_format == "json":
        print_json(status.to_dict())
    else:
        table = Table(title=f"Synchronization: {group_id}")
        table.add_column("Property", style="cyan")
        table.add_column("Value")
        table.add_row("Azure group name", status.azure_group_name or "N/A")
        table.add_row("Synchronized", _mark(status.is_synced))
        table.add_row("AWS group ID", status.aws_group_id or "N/A")
        table.add_row("Azure members", str(status.member_count.azure))
        table.add_row(
            "AWS members",
            "N/A" if status.member_count.aws is None else str(status.member_count.aws),
        )
        console.print(table)
        _print_messages(status.sync_errors)

    if status.sync_errors:
        raise typer.Exit(1)


@app.command("permission-set")
def permission_set_command(
    ctx: typer.Context,
    permission_set_arn: str = typer.Argument(..., help="Permission set ARN"),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Check that a permission set exists and carries policies."""
    output_format = validate_output_format(output_format)
    try:
        service = build_service(load_config(ctx))
        result = asyncio.run(service.validate_permission_inheritance(permission_set_arn))
    except Exception as e:
        handle_cli_error(e, "permission-set", console)
        raise typer.Exit(1)

    if output_format == "json":
        print_json(result.to_dict())
    else:
        table = Table(title=f"Permission set: {result.permission_set_name}")
        table.add_column("Check", style="cyan")
        table.add_column("Result")
        table.add_row("Policies attached", _mark(result.test_results.policy_validation))
        table.add_row("Account access", _mark(result.test_results.account_access))
        table.add_row("Resource permissions", _mark(result.test_results.resource_permissions))
        console.print(table)
        _print_messages(result.errors)

    if not result.is_valid:
        raise typer.Exit(1)


def _validate_account(ctx: typer.Context, account_id: str, output_format: str) -> None:
    try:
        service = build_service(load_config(ctx))
        with console.status(f"Validating assignments for account {account_id}...", spinner="dots"):
            checks = asyncio.run(service.check_account_group_synchronization(account_id))
    except Exception as e:
        handle_cli_error(e, "validate-all", console)
        raise typer.Exit(1)

    if output_format == "json":
        print_json([check.to_dict() for check in checks])
    else:
        console.print(f"Found {len(checks)} group assignments in account {account_id}")
        if checks:
            table = Table(title=f"Group synchronization: {account_id}")
            table.add_column("Group", style="cyan")
            table.add_column("Permission set")
            table.add_column("Assignment status")
            table.add_column("Synced")
            table.add_column("Errors", style="red")
            for check in checks:
                table.add_row(
                    check.assignment.principal_id,
                    check.assignment.permission_set_arn,
                    check.assignment.status,
                    _mark(check.sync_status.is_synced),
                    "\n".join(check.sync_status.sync_errors),
                )
            console.print(table)

    if not all(check.is_healthy for check in checks):
        raise typer.Exit(1)


@app.command("validate-all")
def validate_all_command(
    ctx: typer.Context,
    account_id: Optional[str] = typer.Option(
        None,
        "--account",
        "-a",
        help="Only check the synchronization of groups assigned in this AWS account",
    ),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Validate every account assignment in AWS. Exits 1 if any is invalid."""
    output_format = validate_output_format(output_format)
    if account_id:
        _validate_account(ctx, account_id, output_format)
        return

    try:
        service = build_service(load_config(ctx))
        with console.status("Validating all assignments...", spinner="dots"):
            result = asyncio.run(service.validate_all_assignments())
    except Exception as e:
        handle_cli_error(e, "validate-all", console)
        raise typer.Exit(1)

    if output_format == "json":
        print_json(result.to_dict())
    else:
        console.print(f"Total assignments: {result.total_assignments}")
        console.print(f"[green]Valid: {result.valid_assignments}[/green]")
        console.print(f"[red]Invalid: {result.invalid_assignments}[/red]")

        if result.issues:
            table = Table(title="Assignments with issues")
            table.add_column("Group", style="cyan")
            table.add_column("Account")
            table.add_column("Permission set")
            table.add_column("Errors", style="red")
            table.add_column("Warnings", style="yellow")
            for issue in result.issues:
                table.add_row(
                    issue.assignment.azure_group_id,
                    issue.assignment.aws_account_id,
                    issue.assignment.permission_set_arn,
                    "\n".join(issue.errors),
                    "\n".join(issue.warnings),
                )
            console.print(table)

    if result.invalid_assignments:
        raise typer.Exit(1)


@app.command("report")
def report_command(
    ctx: typer.Context,
    group_id: str = typer.Option(..., "--group-id", "-g", help="Azure AD group object ID"),
    account_id: str = typer.Option(..., "--account-id", "-a", help="AWS account ID"),
    permission_set_arn: str = typer.Option(
        ..., "--permission-set-arn", "-s", help="Permission set ARN"
    ),
    group_name: str = typer.Option("", "--group-name", help="Azure AD group display name"),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Write the markdown report to this file"
    ),
) -> None:
    """Generate a markdown troubleshooting report for one assignment."""
    assignment = _assignment(group_id, account_id, permission_set_arn, group_name)
    try:
        service = build_service(load_config(ctx))
        report = asyncio.run(service.generate_troubleshooting_report(assignment))
    except Exception as e:
        handle_cli_error(e, "report", console)
        raise typer.Exit(1)

    if output:
        output.write_text(report, encoding="utf-8")
        console.print(f"[green]Report written to {output}[/green]")
    else:
        console.print(report, markup=False, highlight=False)


@app.command("group")
def group_command(
    ctx: typer.Context,
    group_id: str = typer.Argument(..., help="Azure AD group object ID"),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Check that an Azure AD group can be assigned. Exits 1 if it is missing or has problems."""
    output_format = validate_output_format(output_format)
    try:
        service = build_service(load_config(ctx))
        validation = asyncio.run(service.validate_azure_group(group_id))
    except Exception as e:
        handle_cli_error(e, "group", console)
        raise typer.Exit(1)

    assignable = validation.exists and not validation.errors

    if output_format == "json":
        print_json({"azure_group_id": group_id, **validation.to_dict()})
    else:
        table = Table(title=f"Azure group: {group_id}")
        table.add_column("Property", style="cyan")
        table.add_column("Value")
        table.add_row("Display name", validation.display_name or "N/A")
        table.add_row("Exists", _mark(validation.exists))
        table.add_row("Active", _mark(validation.is_active))
        table.add_row("Security group", _mark(validation.is_security_group))
        table.add_row("Members", str(validation.member_count))
        console.print(table)

        status = "[green]PASS[/green]" if assignable else "[red]FAIL[/red]"
        console.print(f"\nGroup validation: {status}")
        _print_messages(validation.errors)

    if not assignable:
        raise typer.Exit(1)


@app.command("list-permission-sets")
def list_permission_sets_command(
    ctx: typer.Context,
    show_assignments: bool = typer.Option(
        False, "--show-assignments", help="Show account assignments for each permission set"
    ),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Show the permission sets of the Identity Center instance."""
    output_format = validate_output_format(output_format)
    try:
        aws_client = build_aws_client(load_config(ctx))
        permission_sets = asyncio.run(aws_client.list_permission_sets())
        assignments = (
            asyncio.run(aws_client.list_account_assignments()) if show_assignments else []
        )
    except Exception as e:
        handle_cli_error(e, "list-permission-sets", console)
        raise typer.Exit(1)

    assignments_by_arn: Dict[str, List[AccountAssignment]] = {}
    for assignment in assignments:
        assignments_by_arn.setdefault(assignment.permission_set_arn, []).append(assignment)

    if output_format == "json":
        data = []
        for permission_set in permission_sets:
            entry = permission_set.to_dict()
            if show_assignments:
                entry["assignments"] = [
                    a.to_dict() for a in assignments_by_arn.get(permission_set.arn, [])
                ]
            data.append(entry)
        print_json(data)
        return

    if not permission_sets:
        console.print("[yellow]No permission sets found.[/yellow]")
        return

    table = Table(title="Permission Sets")
    table.add_column("Name", style="cyan")
    table.add_column("ARN")
    table.add_column("Description")
    table.add_column("Session Duration")
    if show_assignments:
        table.add_column("Assignments")
    for permission_set in permission_sets:
        row = [
            permission_set.name,
            permission_set.arn,
            permission_set.description or "N/A",
            permission_set.session_duration,
        ]
        if show_assignments:
            row.append(
                "\n".join(
                    f"{a.account_id}: {a.principal_id} ({_principal_type(a)})"
                    for a in assignments_by_arn.get(permission_set.arn, [])
                )
                or "None"
            )
        table.add_row(*row)
    console.print(table)
    console.print(f"\nTotal: {len(permission_sets)} permission sets")


@app.command("list-assignments")
def list_assignments_command(
    ctx: typer.Context,
    account_id: Optional[str] = typer.Option(
        None, "--account", "-a", help="Only list assignments in this AWS account"
    ),
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Show the account assignments of the Identity Center instance."""
    output_format = validate_output_format(output_format)
    try:
        aws_client = build_aws_client(load_config(ctx))
        if account_id:
            assignments = asyncio.run(aws_client.get_account_assignments_for_account(account_id))
        else:
            assignments = asyncio.run(aws_client.list_account_assignments())
    except Exception as e:
        handle_cli_error(e, "list-assignments", console)
        raise typer.Exit(1)

    if output_format == "json":
        print_json([assignment.to_dict() for assignment in assignments])
        return

    if not assignments:
        console.print("[yellow]No assignments found.[/yellow]")
        return

    table = Table(title="Account Assignments")
    table.add_column("Account", style="cyan")
    table.add_column("Principal")
    table.add_column("Type")
    table.add_column("Permission Set")
    table.add_column("Status")
    for assignment in assignments:
        table.add_row(
            assignment.account_id,
            assignment.principal_id,
            _principal_type(assignment),
            assignment.permission_set_arn,
            assignment.status,
        )
    console.print(table)
    console.print(f"\nTotal: {len(assignments)} assignments")


@app.command("health")
def health_command(
    ctx: typer.Context,
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Check connectivity to AWS Identity Center and Microsoft Graph."""
    output_format = validate_output_format(output_format)
    try:
        service = build_service(load_config(ctx))
        health = asyncio.run(service.check_health())
    except Exception as e:
        handle_cli_error(e, "health", console)
        raise typer.Exit(1)

    if output_format == "json":
        print_json(health.to_dict())
    else:
        table = Table(title="System Health")
        table.add_column("Component", style="cyan")
        table.add_column("Status")
        table.add_column("Response time")
        table.add_column("Details")
        for component in health.components:
            table.add_row(
                component.name,
                _mark(component.healthy),
                f"{component.response_time_ms} ms"
                if component.response_time_ms is not None
                else "N/A",
                component.message,
            )
        console.print(table)

        status = "[green]HEALTHY[/green]" if health.healthy else "[red]UNHEALTHY[/red]"
        console.print(f"\nOverall: {status}")
        if health.recommendations:
            console.print("\n[bold]Recommendations:[/bold]")
            for recommendation in health.recommendations:
                console.print(f"  💡 {recommendation}")

    if not health.healthy:
        raise typer.Exit(1)


@app.command("config")
def config_command(
    ctx: typer.Context,
    output_format: str = typer.Option("table", "--format", "-f", help="Output format: table, json"),
) -> None:
    """Show the effective configuration and report missing settings."""
    output_format = validate_output_format(output_format)
    config = Config()
    app_config = apply_overrides(config.load_app_config(), ctx.obj or {})
    errors = app_config.validate()

    if output_format == "json":
        print_json(
            {
                "config_file": str(config.get_config_file_path()),
                "settings": app_config.to_dict(),
                "errors": errors,
            }
        )
    else:
        console.print(f"Configuration file: {config.get_config_file_path()}")
        table = Table(title="Effective configuration")
        table.add_column("Setting", style="cyan")
        table.add_column("Value")
        for section, values in app_config.to_dict().items():
            for key, value in values.items():
                if isinstance(value, list):
                    value = ", ".join(value)
                table.add_row(f"{section}.{key}", "Not set" if value in (None, "") else str(value))
        console.print(table)

        if errors:
            _print_messages(errors)
        else:
            console.print("[green]✓ Configuration is complete[/green]")

    if errors:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
