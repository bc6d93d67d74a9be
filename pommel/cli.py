from contextlib import closing
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from click import Group

__all__ = ("get_pommel_group", "main")


def get_pommel_group() -> "Group":
    """Get the pommel CLI group.

    Raises:
        MissingDependencyError: If the `rich-click` package is not installed.

    Returns:
        The pommel CLI group.
    """
    from pommel.exceptions import MissingDependencyError

    try:
        import rich_click as click
    except ImportError as e:
        raise MissingDependencyError(package="rich-click", install_package="cli") from e

    from rich.console import Console

    from pommel.config import DEFAULT_TOKEN_PATH, PommelConfig
    from pommel.context import Context
    from pommel.copier import Copier
    from pommel.exceptions import PommelError
    from pommel.utils.logging import configure_logging

    error_console = Console(stderr=True)

    def _fail(ctx: "click.Context", error: Exception) -> None:
        error_console.print(f"Error: {error}", style="red", markup=False, highlight=False)
        cause = error.__cause__
        if cause is not None:
            error_console.print(f"Caused by: {cause}", style="dim", markup=False, highlight=False)
        ctx.exit(1)

    command_aliases = {"copy": "cp", "get": "read", "g": "read", "r": "read"}

    class AliasedGroup(click.RichGroup):
        """Group that also answers to the short command names."""

        def get_command(self, ctx: "click.Context", cmd_name: str) -> "Optional[click.Command]":
            return super().get_command(ctx, command_aliases.get(cmd_name, cmd_name))

    @click.group(name="pommel", cls=AliasedGroup)
    @click.option("--addr", "-a", help="Vault address. Defaults to $VAULT_ADDR.", default=None, type=str)
    @click.option("--token", "-t", help="Vault token. Defaults to $VAULT_TOKEN or the token file.", default=None, type=str)
    @click.option(
        "--token-path", "-p", help="Path to the Vault token file.", default=DEFAULT_TOKEN_PATH, show_default=True, type=str
    )
    @click.option("--namespace", help="Vault namespace. Defaults to $VAULT_NAMESPACE.", default=None, type=str)
    @click.option("--kv-version", help="Vault KV secrets engine version.", default=None, type=click.Choice(["1", "2"]))
    @click.option(
        "--provider",
        "providers",
        help="Extra provider as SCHEME=package.module.Class. Repeatable.",
        multiple=True,
        type=str,
    )
    @click.option(
        "--log-level",
        help="Log level.",
        default="WARNING",
        show_default=True,
        type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    )
    @click.option(
        "--log-format", help="Log format.", default="simple", show_default=True, type=click.Choice(["simple", "structured"])
    )
    @click.pass_context
    def pommel_group(
        ctx: "click.Context",
        addr: Optional[str],
        token: Optional[str],
        token_path: str,
        namespace: Optional[str],
        kv_version: Optional[str],
        providers: "tuple[str, ...]",
        log_level: str,
        log_format: str,
    ) -> None:
        """Copy secrets and files between Vault, the local disk and other backends."""
        configure_logging(level=log_level, format_style=log_format)
        ctx.ensure_object(dict)
        try:
            config = PommelConfig.from_env(
                provider_specs=providers,
                addr=addr,
                token=token,
                token_path=token_path,
                namespace=namespace,
                kv_version=int(kv_version) if kv_version else None,
            )
            ctx.obj["registry"] = config.create_registry()
        except PommelError as e:
            _fail(ctx, e)

    @pommel_group.command(name="cp")
    @click.argument("locations", nargs=-1)
    @click.option("--timeout", help="Give up after this many seconds.", default=None, type=float)
    @click.pass_context
    def copy_command(ctx: "click.Context", locations: "tuple[str, ...]", timeout: Optional[float]) -> None:
        """Copy SOURCE to DESTINATION.

        Each location is an existing local path or SCHEME://BUCKET/KEY. Alias: copy.
        """
        copier = Copier(ctx.obj["registry"])
        context = Context.with_timeout(timeout) if timeout else Context()
        try:
            request = copier.copy(*locations, context=context)
        except PommelError as e:
            _fail(ctx, e)
        else:
            click.echo(f"Copied {request.source} to {request.destination}")

    @pommel_group.command(name="read")
    @click.argument("location")
    @click.option("--timeout", help="Give up after this many seconds.", default=None, type=float)
    @click.option("--yes", "-y", "--no-prompt", "yes", help="Print without asking for confirmation.", is_flag=True)
    @click.pass_context
    def read_command(ctx: "click.Context", location: str, timeout: Optional[float], yes: bool) -> None:
        """Write the value at LOCATION to stdout.

        Asks before displaying the value unless --yes is given. Aliases: get, g, r.
        """
        copier = Copier(ctx.obj["registry"])
        context = Context.with_timeout(timeout) if timeout else Context()
        out = click.get_binary_stream("stdout")
        try:
            _, stream = copier.open(location, context=context)
            with closing(stream):
                if not yes and not click.confirm("Do you want to display this secret?", err=True):
                    return
                for chunk in stream:
                    context.check()
                    out.write(chunk)
            out.flush()
        except PommelError as e:
            _fail(ctx, e)

    @pommel_group.command(name="schemes")
    @click.pass_context
    def schemes_command(ctx: "click.Context") -> None:
        """List registered schemes in registration order."""
        for scheme in ctx.obj["registry"].schemes():
            click.echo(scheme)

    return pommel_group


def main() -> None:
    """Console script entry point."""
    get_pommel_group()()
