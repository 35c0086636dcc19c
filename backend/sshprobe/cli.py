#!/usr/bin/env python3
"""
sshprobe CLI Interface
Command-line batch runner for SSH handshake probes

Targets come from the command line or an input file, are probed
concurrently and each result is written as one JSON line:

    {"host": ..., "port": ..., "protocol": "ssh", "status": ..., "result": {...}, "error": ...}
"""
import argparse
import json
import logging
import sys
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, Iterable, List, Optional, TextIO

from pydantic import ValidationError

from .config import Settings, get_settings
from .services.ssh import (
    MODULE_NAME,
    ProbeOutcome,
    ProbeTarget,
    SSHConfigurationError,
    SSHFlags,
    SSHScanner,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 2
EXIT_INTERRUPTED = 130


def parse_target(text: str, default_port: int) -> ProbeTarget:
    """
    Parse "host", "host:port", "[v6addr]:port" or a bare IPv6 address.

    Raises:
        ValueError: If the port is not a number between 1 and 65535
    """
    text = text.strip()
    host, port = text, default_port
    if text.startswith("["):
        end = text.find("]")
        if end < 0:
            raise ValueError(f"unterminated IPv6 address: {text}")
        host = text[1:end]
        rest = text[end + 1 :]
        if rest:
            if not rest.startswith(":"):
                raise ValueError(f"invalid target: {text}")
            port = int(rest[1:])
    elif text.count(":") == 1:
        host, port_text = text.split(":")
        port = int(port_text)
    if not host:
        raise ValueError(f"invalid target: {text}")
    if not 0 < port < 65536:
        raise ValueError(f"port out of range: {port}")
    return ProbeTarget(host=host, port=port)


def read_targets(lines: Iterable[str], default_port: int) -> List[ProbeTarget]:
    """Parse target lines, skipping blanks and # comments."""
    targets = []
    for line in lines:
        line = line.split("#", 1)[0].strip()
        if line:
            targets.append(parse_target(line, default_port))
    return targets


def build_flags(args: argparse.Namespace) -> SSHFlags:
    """Map parsed arguments onto the SSH scan module flags."""
    return SSHFlags(
        client_id=args.client,
        kex_algorithms=args.kex_algorithms,
        host_key_algorithms=args.host_key_algorithms,
        ciphers=args.ciphers,
        macs=args.macs,
        collect_extensions=args.extensions,
        collect_userauth=args.userauth,
        userauth_username=args.userauth_user,
        gex_min_bits=args.gex_min_bits,
        gex_max_bits=args.gex_max_bits,
        gex_preferred_bits=args.gex_preferred_bits,
        hello_only=args.hello_only,
        connect_timeout=args.timeout,
        ext_info_wait=args.ext_info_wait,
        verbose=args.verbose,
    )


def format_result(target: ProbeTarget, outcome: ProbeOutcome) -> Dict[str, Any]:
    """Build the JSON document written for one target."""
    log = outcome.log.to_dict()
    return {
        "host": target.host,
        "port": target.port,
        "protocol": MODULE_NAME,
        "status": outcome.status.value,
        "result": log or None,
        "error": str(outcome.error) if outcome.error is not None else None,
    }


def run_scan(
    scanner: SSHScanner,
    targets: List[ProbeTarget],
    senders: int,
    output: TextIO,
    cancel: Optional[threading.Event] = None,
) -> Dict[str, int]:
    """
    Probe every target with a pool of sender threads.

    One target's failure never aborts the batch. Setting cancel (done on
    Ctrl-C) makes in-flight probes finish promptly with a timeout status.

    Returns:
        Count of results per status value
    """
    cancel = cancel or threading.Event()
    summary: Dict[str, int] = {}
    executor = ThreadPoolExecutor(max_workers=senders, thread_name_prefix="sshprobe-sender")
    try:
        futures = {executor.submit(scanner.scan, target, cancel): target for target in targets}
        for future in as_completed(futures):
            target = futures[future]
            outcome = future.result()
            output.write(json.dumps(format_result(target, outcome)) + "\n")
            output.flush()
            summary[outcome.status.value] = summary.get(outcome.status.value, 0) + 1
    except KeyboardInterrupt:
        cancel.set()
        raise
    finally:
        executor.shutdown(wait=True, cancel_futures=True)
    return summary


def create_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sshprobe",
        description="Fetch SSH server banners and collect key exchange information",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  sshprobe 192.0.2.10 192.0.2.11:2222
  sshprobe --extensions --userauth --input-file hosts.txt --senders 50
  sshprobe --hello-only --output-file banners.json 198.51.100.0
        """,
    )
    parser.add_argument("targets", nargs="*", help="Targets as host, host:port or [v6addr]:port")
    parser.add_argument("--input-file", "-f", help="File with one target per line ('-' for stdin)")
    parser.add_argument("--output-file", "-o", default="-", help="Output file for results ('-' for stdout)")
    parser.add_argument("--port", "-p", type=int, default=settings.default_port, help="Default target port")
    parser.add_argument("--senders", type=int, default=settings.senders, help="Number of concurrent probes")
    parser.add_argument(
        "--timeout", type=float, default=settings.connect_timeout, help="Per-target timeout in seconds (0 disables)"
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=settings.log_level,
        help="Logging level (default: %(default)s)",
    )

    ssh = parser.add_argument_group("SSH options")
    defaults = SSHFlags()
    ssh.add_argument("--client", default=settings.client_id, help="Specify the client ID string to use")
    ssh.add_argument("--kex-algorithms", default=defaults.kex_algorithms, help="Kex algorithms to offer")
    ssh.add_argument(
        "--host-key-algorithms", default=defaults.host_key_algorithms, help="Host key algorithms to offer"
    )
    ssh.add_argument("--ciphers", default=defaults.ciphers, help="Cipher algorithms to offer")
    ssh.add_argument("--macs", default=defaults.macs, help="MAC algorithms to offer")
    ssh.add_argument("--extensions", action="store_true", help="Collect SSH extensions as per RFC 8308")
    ssh.add_argument("--userauth", action="store_true", help="List userauth methods with a 'none' request")
    ssh.add_argument("--userauth-user", default=settings.userauth_username, help="User name for the 'none' request")
    ssh.add_argument("--gex-min-bits", type=int, default=defaults.gex_min_bits, help="Minimum DH GEX prime bits")
    ssh.add_argument("--gex-max-bits", type=int, default=defaults.gex_max_bits, help="Maximum DH GEX prime bits")
    ssh.add_argument(
        "--gex-preferred-bits", type=int, default=defaults.gex_preferred_bits, help="Preferred DH GEX prime bits"
    )
    ssh.add_argument(
        "--ext-info-wait", type=float, default=settings.ext_info_wait, help="Seconds to wait for EXT_INFO"
    )
    ssh.add_argument("--hello-only", action="store_true", help="Limit scan to the initial hello message")
    ssh.add_argument("--verbose", action="store_true", help="Record KEXINIT cookies and the client KEXINIT")
    return parser


def _collect_targets(args: argparse.Namespace) -> List[ProbeTarget]:
    targets = read_targets(args.targets, args.port)
    if args.input_file == "-":
        targets.extend(read_targets(sys.stdin, args.port))
    elif args.input_file:
        with open(args.input_file, "r", encoding="utf-8") as handle:
            targets.extend(read_targets(handle, args.port))
    return targets


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point"""
    try:
        settings = get_settings()
    except ValidationError as e:
        print(f"[sshprobe] ERROR: invalid environment configuration: {e}", file=sys.stderr)
        return EXIT_USAGE

    parser = create_parser(settings)
    args = parser.parse_args(argv)

    logging.basicConfig(level=args.log_level, format=settings.log_format)

    if args.senders < 1:
        parser.error("--senders must be at least 1")

    try:
        scanner = SSHScanner(build_flags(args))
    except (SSHConfigurationError, ValidationError) as e:
        logger.critical("Invalid SSH configuration: %s", e)
        return EXIT_USAGE

    try:
        targets = _collect_targets(args)
    except (OSError, ValueError) as e:
        logger.critical("Could not read targets: %s", e)
        return EXIT_USAGE

    if not targets:
        parser.print_usage(sys.stderr)
        logger.error("No targets given")
        return EXIT_USAGE

    logger.info("Probing %d target(s) with %d sender(s)", len(targets), args.senders)
    output = sys.stdout if args.output_file == "-" else open(args.output_file, "w", encoding="utf-8")
    try:
        summary = run_scan(scanner, targets, args.senders, output)
    except KeyboardInterrupt:
        logger.warning("Scan interrupted by user")
        return EXIT_INTERRUPTED
    finally:
        if output is not sys.stdout:
            output.close()

    logger.info("Scan complete: %s", ", ".join(f"{k}={v}" for k, v in sorted(summary.items())) or "no results")
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
