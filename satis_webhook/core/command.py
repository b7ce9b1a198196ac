"""Build command assembly."""

from .models import BuildCommand, RebuildConfig


def build_command(config: RebuildConfig, repository_url: str | None = None) -> BuildCommand:
    """Assemble the build tool invocation.

    A resolved repository gives a repository-scoped build; otherwise
    every tracked repository is rebuilt. With ``user`` configured the
    command runs through ``sudo -u <user> -i`` as discrete arguments.
    """
    inner: tuple[str, ...] = (config.bin, "build")
    if repository_url is not None:
        inner += ("--repository-url", repository_url)
    inner += (config.json, config.webroot)

    return BuildCommand(inner=inner, run_as=config.user or None)
