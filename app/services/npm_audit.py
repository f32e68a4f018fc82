"""Run npm audit against a dependency mapping in a throwaway project.

The mapping is written into a synthetic ``package.json`` inside a fresh temp
directory, npm resolves a lockfile for it, and ``npm audit --json`` reports
against that lockfile. The directory is removed once npm is done with it.
"""
import asyncio
import json
import logging
import os
import shutil
import signal
import tempfile
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional

from app.config import Settings
from app.models import AuditResult
from app.services.errors import (
    AuditOutputParseError,
    InvalidDependenciesError,
    LockfileGenerationError,
    ManifestUploadError,
)
from app.services.normalizer import normalize_report

logger = logging.getLogger(__name__)

PLACEHOLDER_NAME = "temp-package"
PLACEHOLDER_VERSION = "1.0.0"
TEMP_PREFIX = "npm-audit-"


@dataclass
class CommandResult:
    returncode: Optional[int]
    stdout: str = ""
    stderr: str = ""
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out

    def describe(self) -> str:
        if self.timed_out:
            return "command timed out"
        text = self.stderr.strip() or self.stdout.strip()
        return f"exit {self.returncode}: {text}" if text else f"exit {self.returncode}"


CommandRunner = Callable[[List[str], str, Optional[float]], Awaitable[CommandResult]]


async def _drain(stream: asyncio.StreamReader, buf: bytearray) -> None:
    while True:
        chunk = await stream.read(65536)
        if not chunk:
            return
        buf.extend(chunk)


async def run_command(cmd: List[str], cwd: str, timeout: Optional[float] = None) -> CommandResult:
    """Run *cmd* in *cwd* and capture its output.

    Raises OSError when the executable cannot be started. A timeout kills the
    whole process group and returns whatever was read so far with
    ``timed_out`` set.
    """
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        cwd=cwd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        start_new_session=True,
    )
    stdout, stderr = bytearray(), bytearray()
    timed_out = False
    try:
        await asyncio.wait_for(
            asyncio.gather(_drain(proc.stdout, stdout), _drain(proc.stderr, stderr), proc.wait()),
            timeout=timeout,
        )
    except asyncio.TimeoutError:
        timed_out = True
        try:
            os.killpg(proc.pid, signal.SIGKILL)
        except ProcessLookupError:
            pass
        await proc.wait()
    return CommandResult(
        returncode=proc.returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
        timed_out=timed_out,
    )


def validate_dependencies(dependencies: Any) -> Dict[str, str]:
    if not isinstance(dependencies, dict):
        raise InvalidDependenciesError("'dependencies' must be an object of name -> version range")
    for name, spec in dependencies.items():
        if not isinstance(name, str) or not name or not isinstance(spec, str):
            raise InvalidDependenciesError(f"Invalid entry for dependency {name!r}: version range must be a string")
    return dependencies


def parse_dependencies(payload: Any) -> Dict[str, str]:
    """Extract and check the ``dependencies`` mapping of a request body."""
    if not isinstance(payload, dict):
        raise InvalidDependenciesError("Request body must be a JSON object")
    return validate_dependencies(payload.get("dependencies"))


def parse_manifest(content: bytes) -> Dict[str, Any]:
    """Decode an uploaded package.json into a dict."""
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise ManifestUploadError("package.json must be UTF-8 encoded")
    try:
        manifest = json.loads(text)
    except ValueError as e:
        raise ManifestUploadError(f"package.json is not valid JSON: {e}")
    if not isinstance(manifest, dict):
        raise ManifestUploadError("package.json must contain a JSON object")
    return manifest


def build_manifest(dependencies: Dict[str, str]) -> Dict[str, Any]:
    return {
        "name": PLACEHOLDER_NAME,
        "version": PLACEHOLDER_VERSION,
        "dependencies": dependencies,
    }


class NpmAuditor:
    def __init__(self, settings: Optional[Settings] = None, runner: Optional[CommandRunner] = None):
        self.settings = settings or Settings()
        self.runner = runner or run_command

    def lockfile_command(self) -> List[str]:
        return [self.settings.npm_bin, "install", "--package-lock-only", "--ignore-scripts"]

    def install_command(self) -> List[str]:
        return [self.settings.npm_bin, "install", "--ignore-scripts"]

    def audit_command(self) -> List[str]:
        cmd = [self.settings.npm_bin, "audit", "--json"]
        cmd.extend(f"--omit={kind}" for kind in self.settings.omit)
        return cmd

    async def _invoke(self, cmd: List[str], cwd: str) -> CommandResult:
        logger.info("Running %s", " ".join(cmd))
        result = await self.runner(cmd, cwd, self.settings.timeout)
        logger.info("%s finished with exit code %s", " ".join(cmd[:2]), result.returncode)
        return result

    async def _generate_lockfile(self, workdir: str) -> None:
        try:
            result = await self._invoke(self.lockfile_command(), workdir)
        except OSError as e:
            logger.error("Failed to start npm: %s", e)
            raise LockfileGenerationError(str(e))
        if not result.ok:
            logger.error("Failed to create package-lock.json: %s", result.describe())
            raise LockfileGenerationError(result.describe())

    async def _install_modules(self, workdir: str) -> None:
        try:
            result = await self._invoke(self.install_command(), workdir)
        except OSError as e:
            logger.warning("Failed to install dependencies: %s", e)
            return
        if not result.ok:
            logger.warning("Failed to install dependencies: %s", result.describe())

    async def _run_audit(self, workdir: str) -> CommandResult:
        # npm audit exits non-zero whenever it finds something; only the output matters
        try:
            result = await self._invoke(self.audit_command(), workdir)
        except OSError as e:
            logger.error("Failed to start npm audit: %s", e)
            return CommandResult(returncode=None, stderr=str(e))
        if result.timed_out:
            logger.warning("npm audit timed out, using partial output")
        return result

    async def audit(self, dependencies: Any) -> AuditResult:
        dependencies = validate_dependencies(dependencies)
        logger.info("Received dependencies: %s", dependencies)

        workdir = tempfile.mkdtemp(prefix=TEMP_PREFIX, dir=self.settings.temp_root)
        try:
            manifest_path = os.path.join(workdir, "package.json")
            with open(manifest_path, "w", encoding="utf-8") as f:
                json.dump(build_manifest(dependencies), f, indent=2)
            logger.info("Temporary package.json created at: %s", manifest_path)

            await self._generate_lockfile(workdir)
            if self.settings.install_modules:
                await self._install_modules(workdir)
            audit = await self._run_audit(workdir)
        finally:
            shutil.rmtree(workdir, ignore_errors=True)

        if audit.stderr:
            logger.warning("npm audit stderr: %s", audit.stderr.strip())

        try:
            report = json.loads(audit.stdout)
        except ValueError as e:
            logger.error("Error parsing audit output: %s", e)
            raise AuditOutputParseError(str(e), audit.stdout, audit.stderr)

        result = normalize_report(report)
        logger.info("npm audit found %d vulnerable packages", len(result.vulnerabilities))
        return result
