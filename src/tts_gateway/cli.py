"""
Command-Line Interface for tts-gateway.

Runs the HTTP server, or uses the same Gateway directly without one.

Usage Examples:
    # Serve the HTTP API (bind address from BIND_ADDR / settings by default)
    tts-gateway serve --bind 127.0.0.1:3000

    # Configured modes
    tts-gateway modes --json

    # Voices of one mode
    tts-gateway voices eSpeak
    tts-gateway voices Polly --raw

    # One-off synthesis to a file
    tts-gateway say "Hello there" --mode gTTS --voice en --out hello.mp3

Exit Codes:
    0  success
    1  request rejected or provider failure
    2  invalid configuration
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import Any, List, Optional
from uuid import uuid4

from tts_gateway.core.config import ConfigValidationError, GatewayConfig, load_settings
from tts_gateway.core.logging import configure_logging, get_logger, info, set_request_id
from tts_gateway.services.errors import GatewayError
from tts_gateway.tts.modes import TTSMode

_MODE_NAMES = [m.value for m in TTSMode]


def _parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(prog="tts-gateway", description="tts-gateway: one API, many TTS backends")
    parser.add_argument("--settings", help="Settings YAML (default: $TTS_GATEWAY_SETTINGS or config/settings.yaml)")
    parser.add_argument("--json", action="store_true", help="Print JSON output")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server")
    serve.add_argument("--bind", help="host:port to listen on")

    sub.add_parser("modes", help="List configured modes")

    voices = sub.add_parser("voices", help="List voices of a mode")
    voices.add_argument("mode", choices=_MODE_NAMES)
    voices.add_argument("--raw", action="store_true", help="Provider-native voice records")

    say = sub.add_parser("say", help="Synthesize text to a file")
    say.add_argument("text", help="Text to synthesize")
    say.add_argument("--mode", required=True, choices=_MODE_NAMES)
    say.add_argument("--voice", required=True, help="Voice name (see 'voices')")
    say.add_argument("--rate", type=float, help="Speaking rate")
    say.add_argument("--max-length", type=int, help="Reject audio this many seconds or longer")
    say.add_argument("--format", dest="preferred_format", help="Preferred output format")
    say.add_argument("--out", required=True, help="Output file")

    return parser.parse_args(argv)


def _print(args: argparse.Namespace, payload: Any) -> None:
    if args.json:
        print(json.dumps(payload, ensure_ascii=False))
    elif isinstance(payload, list):
        for item in payload:
            print(item["name"] if isinstance(item, dict) and "name" in item else item)
    else:
        print(payload)


def _split_bind(addr: str) -> tuple[str, int]:
    """Split host:port; IPv6 hosts lose their brackets."""
    host, _, port = addr.rpartition(":")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return host, int(port)


def _serve(args: argparse.Namespace, config: GatewayConfig) -> int:
    import uvicorn

    from tts_gateway.api.dependencies import get_settings

    # The app loads its own settings; point it at the file validated here
    if args.settings:
        os.environ["TTS_GATEWAY_SETTINGS"] = str(Path(args.settings).resolve())
        get_settings.cache_clear()

    host, port = _split_bind(args.bind or config.server.bind_addr)
    uvicorn.run("tts_gateway.main:app", host=host, port=port, log_config=None)
    return 0


async def _run(args: argparse.Namespace, config: GatewayConfig) -> Any:
    from tts_gateway.services.dispatcher import Gateway, SynthesisRequest

    gateway = Gateway.from_config(config)
    try:
        if args.command == "modes":
            return gateway.list_modes()

        if args.command == "voices":
            return await gateway.list_voices(TTSMode(args.mode), raw=args.raw)

        result = await gateway.dispatch(
            SynthesisRequest(
                text=args.text,
                mode=TTSMode(args.mode),
                voice=args.voice,
                speaking_rate=args.rate,
                max_length=args.max_length,
                preferred_format=args.preferred_format,
            )
        )
        out = Path(args.out)
        out.write_bytes(result.audio)
        return {
            "ok": True,
            "out": str(out),
            "bytes": len(result.audio),
            "content_type": result.content_type,
            "cache": result.cache_status,
        }
    finally:
        await gateway.aclose()


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Returns:
        Exit code (0 success, 1 request failure, 2 configuration error).
    """
    args = _parse_args(argv)

    configure_logging()
    log = get_logger("tts-gateway.cli")
    set_request_id(uuid4().hex[:12])

    try:
        settings = load_settings(args.settings, required=args.settings is not None)
        config = GatewayConfig.from_settings(settings)
        if args.command == "serve" and args.bind:
            GatewayConfig._validate_bind_addr("--bind", args.bind)
    except (ConfigValidationError, FileNotFoundError) as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return 2

    if args.command == "serve":
        return _serve(args, config)

    try:
        payload = asyncio.run(_run(args, config))
    except ConfigValidationError as e:
        print(f"configuration error: {e}", file=sys.stderr)
        return 2
    except GatewayError as e:
        body = e.to_dict()
        if args.json:
            print(json.dumps({"ok": False, **body}, ensure_ascii=False))
        else:
            print(f"error {body['code']}: {e.message}", file=sys.stderr)
        return 1

    if args.command == "say":
        info(log, "say_done", out=payload["out"], bytes=payload["bytes"])
    _print(args, payload)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
