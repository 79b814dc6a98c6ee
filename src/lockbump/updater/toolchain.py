"""Pinned toolchain installation via rustup."""

import asyncio

import structlog

from lockbump.errors import LockbumpError

logger = structlog.get_logger()

TOOLCHAIN_INSTALL_TIMEOUT_SECONDS = 600


class ToolchainInstallError(LockbumpError):
    """Raised when the pinned toolchain cannot be installed."""

    def __init__(self, version: str, message: str):
        self.version = version
        super().__init__(
            f"Failed to install toolchain {version}: {message}",
            context={"toolchain": version},
        )


class ToolchainInstaller:
    """Installs a pinned toolchain with a minimal profile.

    Attributes:
        rustup_path: Path or name of the rustup executable.
        timeout_seconds: Maximum time allowed for the install.
    """

    def __init__(
        self,
        rustup_path: str = "rustup",
        timeout_seconds: int = TOOLCHAIN_INSTALL_TIMEOUT_SECONDS,
    ):
        self.rustup_path = rustup_path
        self.timeout_seconds = timeout_seconds

    async def install(self, version: str) -> None:
        """Install the given toolchain version if it is not present.

        rustup treats an already-installed toolchain as success, so this is
        safe to call on every run.

        Raises:
            ToolchainInstallError: If rustup fails, times out, or is missing.
        """
        logger.info("Installing toolchain", toolchain=version)

        try:
            process = await asyncio.create_subprocess_exec(
                self.rustup_path,
                "toolchain",
                "install",
                version,
                "--profile",
                "minimal",
                "--no-self-update",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )

            _, stderr = await asyncio.wait_for(
                process.communicate(),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            process.kill()
            await process.wait()
            raise ToolchainInstallError(
                version, f"install timed out after {self.timeout_seconds}s"
            ) from exc
        except OSError as exc:
            raise ToolchainInstallError(
                version, f"failed to execute rustup: {exc}"
            ) from exc

        if process.returncode != 0:
            raise ToolchainInstallError(
                version, stderr.decode("utf-8", errors="replace").strip()
            )

        logger.info("Toolchain ready", toolchain=version)
