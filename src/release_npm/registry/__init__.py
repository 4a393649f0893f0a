"""Package registry integration."""

from __future__ import annotations

from release_npm.registry.npm import NpmClient, is_otp_error, package_url

__all__ = ["NpmClient", "is_otp_error", "package_url"]
