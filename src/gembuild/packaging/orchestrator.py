"""Sequences validation, archive building and optional signing for one build."""

import enum
from pathlib import Path

from pyvider.telemetry import logger

from ..exceptions import BuildError
from ..loader import load_spec
from ..models import BuildReport, SignatureBlock
from ..specification import SigningRequest, Specification
from ..validator import validate
from .builder import ArchiveBuilder
from .signer import sign_request


class BuildState(enum.Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    BUILDING = "building"
    SIGNING = "signing"
    REPORTING = "reporting"
    DONE = "done"
    FAILED = "failed"


TERMINAL_STATES = frozenset({BuildState.DONE, BuildState.FAILED})


class BuildOrchestrator:
    """Runs a single build; use a fresh instance for every build."""

    def __init__(self, output_dir: Path | str, force: bool = False) -> None:
        self.output_dir = Path(output_dir)
        self.force = force
        self.state = BuildState.IDLE
        self.failure: BaseException | None = None

    def _transition(self, state: BuildState) -> None:
        logger.debug("Build state change", previous=self.state.value, state=state.value)
        self.state = state

    def _fail(self, error: BaseException) -> None:
        self.failure = error
        logger.error(f"Build failed while {self.state.value}: {error}")
        self.state = BuildState.FAILED

    def _ensure_idle(self) -> None:
        if self.state is not BuildState.IDLE:
            raise BuildError(
                f"BuildOrchestrator is {self.state.value}; create a new one per build"
            )

    def _sign(self, digest: bytes, request: SigningRequest) -> SignatureBlock:
        self._transition(BuildState.SIGNING)
        return sign_request(digest, request)

    def build_file(self, spec_path: Path | str) -> BuildReport:
        """Loads the gemspec at ``spec_path`` and builds it."""
        self._ensure_idle()
        try:
            spec = load_spec(spec_path)
        except BaseException as e:
            self._fail(e)
            raise
        return self.build(spec)

    def build(self, spec: Specification) -> BuildReport:
        self._ensure_idle()
        logger.info(f"Building {spec.full_name} into {self.output_dir}")
        try:
            self._transition(BuildState.VALIDATING)
            validated = validate(spec)

            self._transition(BuildState.BUILDING)
            archive = ArchiveBuilder(self.output_dir, force=self.force).build(
                validated, signer=self._sign
            )
        except BaseException as e:
            self._fail(e)
            raise

        self._transition(BuildState.REPORTING)
        report = BuildReport(
            success=True,
            name=spec.name,
            version=str(validated.version),
            output_path=str(archive.path),
            warnings=validated.warnings,
        )
        self._transition(BuildState.DONE)
        return report
