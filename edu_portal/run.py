"""
Server runner.

Usage:
  python -m edu_portal.run
  HOST=0.0.0.0 PORT=8443 TLS_CERT_FILE=cert.pem TLS_KEY_FILE=key.pem python -m edu_portal.run

HTTPS is used only when both the certificate and the key are configured.
"""

from __future__ import annotations

import logging
import os

import uvicorn


def _env(name: str, default: str | None = None) -> str | None:
    value = (os.getenv(name) or "").strip()
    return value or default


def server_config() -> uvicorn.Config:
    certfile, keyfile = _env("TLS_CERT_FILE"), _env("TLS_KEY_FILE")
    if bool(certfile) != bool(keyfile):
        raise SystemExit("Set both TLS_CERT_FILE and TLS_KEY_FILE, or neither.")
    return uvicorn.Config(
        "edu_portal.main:app",
        host=_env("HOST", "127.0.0.1"),
        port=int(_env("PORT", "8000")),
        ssl_certfile=certfile,
        ssl_keyfile=keyfile,
        proxy_headers=True,
        forwarded_allow_ips=_env("FORWARDED_ALLOW_IPS", "127.0.0.1"),
        log_level=_env("LOG_LEVEL", "info").lower(),
    )


def main() -> None:
    logging.basicConfig(
        level=_env("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    uvicorn.Server(server_config()).run()


if __name__ == "__main__":
    main()
