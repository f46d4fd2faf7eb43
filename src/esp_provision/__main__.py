"""
Entry point for running the provisioning client as a module.

Usage:
    python -m esp_provision softap --scan
    python -m esp_provision ble --pop abcd1234 --ssid MyNetwork --passphrase secret
    python -m esp_provision softap --ssid MyNetwork --passphrase secret -v  # verbose mode
"""

from .cli import run


if __name__ == "__main__":
    run()
