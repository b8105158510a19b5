"""Remote-login command builders and ``{user}``/``{ip}`` interpolation."""


def parse_host(host: str) -> tuple[str, str] | None:
    """Split a ``user@ip`` host string.

    Args:
        host: Host in ``user@address`` form.

    Returns:
        ``(user, ip)``, or None if there is no ``@``.
    """
    user, at, ip = host.partition("@")
    if not at:
        return None
    return user, ip


def interpolate(command: str, host: str) -> str:
    """Replace ``{user}`` and ``{ip}`` placeholders using the host string.

    Commands are returned unchanged when the host has no ``@``.
    """
    parts = parse_host(host)
    if parts is None:
        return command
    user, ip = parts
    return command.replace("{user}", user).replace("{ip}", ip)


def connect_command(host: str, directory: str | None = None) -> str:
    """Build the command that logs into ``host``.

    With a directory, a login shell is started there on the remote side.
    """
    if directory:
        return f'ssh -t {host} "cd {directory} && exec \\$SHELL -l"'
    return f"ssh {host}"


def disconnect_command() -> str:
    """Command that closes the remote session."""
    return "exit"


def pane_prefix(host: str | None, directory: str | None) -> str | None:
    """First command typed into every workspace pane, if any."""
    if host:
        return connect_command(host, directory)
    if directory:
        return f"cd {directory}"
    return None
