"""
ChannelFactory - Parse host strings and build the matching host channel.

Format-based routing:
    user@host              → SSHChannel (port 22)
    user@host:2222         → SSHChannel with custom SSH port
    user@[fe80::1]:2222    → SSHChannel with IPv6
    host                   → SSHChannel, ssh client default user
    local://               → LocalChannel (deploy onto this machine)
"""

from typing import Optional, Tuple, Union

from crawldeploy.core import ProcessExecutor
from .exceptions import ConfigurationError
from .local_channel import LocalChannel
from .ssh_channel import SSHChannel


def _parse_port(value: str, device: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise ConfigurationError(f"Invalid SSH port in host string: {device}")
    if not 0 < port < 65536:
        raise ConfigurationError(f"SSH port out of range in host string: {device}")
    return port


class ChannelFactory:
    """Factory for parsing host strings into host channels."""

    @staticmethod
    def parse_host_string(device: str) -> Tuple[Optional[str], str, int]:
        """
        Split "user@host[:port]" into (user, host, port).

        Raises:
            ConfigurationError: If the string is malformed
        """
        if not device:
            raise ConfigurationError("Empty host string")

        if '@' in device:
            user, host_part = device.split('@', 1)
            if not user:
                raise ConfigurationError(f"Missing user before '@': {device}")
        else:
            user, host_part = None, device

        # IPv6: [fe80::1] or [fe80::1]:2222
        if host_part.startswith('['):
            bracket_end = host_part.find(']')
            if bracket_end == -1:
                raise ConfigurationError(f"Malformed IPv6 address: {device}")
            host = host_part[1:bracket_end]
            remainder = host_part[bracket_end + 1:]
            if remainder and not remainder.startswith(':'):
                raise ConfigurationError(f"Unexpected text after IPv6 address: {device}")
            port = _parse_port(remainder[1:], device) if remainder else 22
        elif host_part.count(':') == 1:
            host, port_str = host_part.rsplit(':', 1)
            port = _parse_port(port_str, device)
        elif ':' in host_part:
            raise ConfigurationError(f"IPv6 addresses must be bracketed: {device}")
        else:
            host, port = host_part, 22

        if not host:
            raise ConfigurationError(f"Missing host name: {device}")
        return user, host, port

    @staticmethod
    def from_host_string(
        device: str,
        become: bool = True,
        connect_timeout: int = 10,
        command_timeout: float = 300,
        executor: Optional[ProcessExecutor] = None
    ) -> Union[SSHChannel, LocalChannel]:
        """
        Build the channel for a host string.

        Example:
            channel = ChannelFactory.from_host_string("deploy@crawler.example")
            channel.check_connection()
        """
        if device in ('local://', 'local'):
            return LocalChannel(command_timeout=command_timeout, executor=executor)

        if '://' in device:
            raise ConfigurationError(
                f"Unknown host format: {device}\n"
                f"Expected: user@host | user@host:port | user@[v6addr]:port | host | local://"
            )

        user, host, port = ChannelFactory.parse_host_string(device)
        return SSHChannel(
            user,
            host,
            ssh_port=port,
            become=become,
            connect_timeout=connect_timeout,
            command_timeout=command_timeout,
            executor=executor
        )
