# src/dnskeeper/net/system.py

from __future__ import annotations

"""
OS-backed collaborators for the DNS monitor.

- SystemAdapterSource: adapter list from psutil, DNS servers from the OS
  (netsh per adapter on Windows, scutil on macOS, /etc/resolv.conf on Linux)
- SystemDnsApplier: writes DNS with netsh / networksetup / resolv.conf

Failures are reported as CollaboratorError so the monitor can log them and
mark the status as dns_mismatch. Writing DNS needs administrator rights;
that is the caller's concern.
"""

import ctypes
import ipaddress
import logging
import os
import socket
import subprocess
import sys
from collections.abc import Sequence
from pathlib import Path

import psutil

from ..core.errors import CollaboratorError
from ..tasks.task_models import NetworkInterface

logger = logging.getLogger(__name__)

if hasattr(subprocess, "CREATE_NO_WINDOW"):
    CREATE_NO_WINDOW = subprocess.CREATE_NO_WINDOW
else:
    CREATE_NO_WINDOW = 0x08000000

RESOLV_CONF = Path("/etc/resolv.conf")


def _platform() -> str:
    if sys.platform.startswith("win"):
        return "windows"
    if sys.platform == "darwin":
        return "macos"
    return "linux"


def has_admin_rights() -> bool:
    """True if this process may change DNS settings (root, or an elevated Windows token)."""
    if os.name != "nt":
        return os.geteuid() == 0
    try:
        return bool(ctypes.windll.shell32.IsUserAnAdmin())  # type: ignore[attr-defined]
    except (AttributeError, OSError):
        return False


def _is_loopback(name: str) -> bool:
    lowered = name.lower()
    return lowered == "lo" or lowered.startswith("lo0") or "loopback" in lowered


def _is_ip(text: str) -> bool:
    try:
        ipaddress.ip_address(text)
    except ValueError:
        return False
    return True


def _run(args: list[str], *, timeout: float) -> subprocess.CompletedProcess[str]:
    kwargs: dict[str, object] = {}
    if _platform() == "windows":
        kwargs["creationflags"] = CREATE_NO_WINDOW
    try:
        return subprocess.run(
            args,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            check=False,
            **kwargs,  # type: ignore[arg-type]
        )
    except subprocess.TimeoutExpired as e:
        raise CollaboratorError(f"{args[0]} timed out after {timeout}s") from e
    except OSError as e:
        raise CollaboratorError(f"Failed to execute {args[0]}: {e}") from e


def parse_resolv_conf(text: str) -> list[str]:
    servers: list[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line.startswith("nameserver"):
            continue
        parts = line.split()
        if len(parts) >= 2 and parts[1] not in servers:
            servers.append(parts[1])
    return servers


def parse_scutil_dns(text: str) -> list[str]:
    servers: list[str] = []
    for line in text.splitlines():
        if "nameserver" not in line:
            continue
        parts = line.split()
        if len(parts) >= 3 and parts[2] not in servers:
            servers.append(parts[2])
    return servers


def parse_netsh_dnsservers(text: str) -> list[str]:
    """Extract IPv4 addresses from `netsh interface ipv4 show dnsservers` output."""
    servers: list[str] = []
    for line in text.splitlines():
        for part in line.split():
            if "." in part and _is_ip(part) and part not in servers:
                servers.append(part)
    return sorted(servers)


class SystemAdapterSource:
    """Enumerate non-loopback adapters with their current DNS servers."""

    def __init__(self, *, command_timeout: float = 10.0) -> None:
        self._timeout = float(command_timeout)

    def list_adapters(self) -> list[NetworkInterface]:
        try:
            stats = psutil.net_if_stats()
            addrs = psutil.net_if_addrs()
        except Exception as e:
            raise CollaboratorError(f"Failed to get adapters: {e}") from e

        platform = _platform()
        shared_dns: list[str] | None = None
        if platform != "windows":
            # Linux/macOS expose one resolver configuration for all adapters.
            shared_dns = self._global_dns(platform)

        out: list[NetworkInterface] = []
        for name, st in stats.items():
            if _is_loopback(name):
                continue

            ipv4: list[str] = []
            ipv6: list[str] = []
            mac: str | None = None
            netmask: str | None = None
            for a in addrs.get(name, []):
                if a.family == socket.AF_INET:
                    ipv4.append(a.address)
                    netmask = netmask or getattr(a, "netmask", None)
                elif a.family == socket.AF_INET6:
                    ipv6.append(a.address)
                elif a.family == psutil.AF_LINK:
                    mac = a.address or None

            if shared_dns is not None:
                dns = list(shared_dns)
            elif st.isup:
                dns = self._windows_dns(name)
            else:
                dns = []

            out.append(
                NetworkInterface(
                    name=name,
                    enabled=bool(st.isup),
                    dns_servers=dns,
                    mac_address=mac,
                    ipv4=sorted(ipv4),
                    ipv6=sorted(ipv6),
                    ipv4_netmask=netmask,
                    # psutil reports 0 when the link speed is unknown.
                    speed_mbps=getattr(st, "speed", 0) or None,
                    mtu=getattr(st, "mtu", 0) or None,
                )
            )

        return out

    def _global_dns(self, platform: str) -> list[str]:
        if platform == "macos":
            res = _run(["scutil", "--dns"], timeout=self._timeout)
            return parse_scutil_dns(res.stdout)
        try:
            return parse_resolv_conf(RESOLV_CONF.read_text("utf-8"))
        except OSError:
            logger.debug("Cannot read %s", RESOLV_CONF, exc_info=True)
            return []

    def _windows_dns(self, name: str) -> list[str]:
        res = _run(
            ["netsh", "interface", "ipv4", "show", "dnsservers", f"name={name}"],
            timeout=self._timeout,
        )
        if res.returncode != 0:
            logger.debug("netsh show dnsservers failed for %s: %s", name, res.stderr.strip())
            return []
        return parse_netsh_dnsservers(res.stdout)


class SystemDnsApplier:
    """Apply a static DNS server list to one adapter."""

    def __init__(self, *, command_timeout: float = 10.0) -> None:
        self._timeout = float(command_timeout)

    def apply_dns(self, adapter_name: str, target_dns: Sequence[str]) -> None:
        servers = [s.strip() for s in target_dns if s and s.strip()]
        if not servers:
            raise CollaboratorError("DNS servers list is empty")

        platform = _platform()
        if platform == "windows":
            self._apply_windows(adapter_name, servers)
        elif platform == "macos":
            self._check(
                _run(["networksetup", "-setdnsservers", adapter_name, *servers], timeout=self._timeout)
            )
        else:
            self._apply_resolv_conf(servers)

    def flush_cache(self) -> None:
        if _platform() != "windows":
            return
        res = _run(["ipconfig", "/flushdns"], timeout=self._timeout)
        if res.returncode != 0:
            logger.debug("ipconfig /flushdns failed: %s", res.stderr.strip())

    def _apply_windows(self, adapter_name: str, servers: list[str]) -> None:
        self._check(
            _run(
                [
                    "netsh", "interface", "ipv4", "set", "dnsservers",
                    f"name={adapter_name}", "source=static", f"address={servers[0]}",
                    "register=primary", "validate=no",
                ],
                timeout=self._timeout,
            )
        )
        for index, dns in enumerate(servers[1:], start=2):
            self._check(
                _run(
                    [
                        "netsh", "interface", "ipv4", "add", "dnsservers",
                        f"name={adapter_name}", f"address={dns}", f"index={index}",
                        "validate=no",
                    ],
                    timeout=self._timeout,
                )
            )

    @staticmethod
    def _apply_resolv_conf(servers: list[str]) -> None:
        # Linux has no per-adapter resolver here: resolv.conf is global.
        body = "".join(f"nameserver {s}\n" for s in servers)
        try:
            RESOLV_CONF.write_text(body, "utf-8")
        except OSError as e:
            raise CollaboratorError(f"Failed to set DNS: {e}") from e

    @staticmethod
    def _check(res: subprocess.CompletedProcess[str]) -> None:
        if res.returncode == 0:
            return
        detail = (res.stderr or res.stdout or "").strip() or f"exit code {res.returncode}"
        raise CollaboratorError(detail)
