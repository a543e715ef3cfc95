"""Stack synthesis, teardown and artifact comparison."""

from .config import SynthConfig
from .diff import ArtifactDiff
from .outputs import OutputTable
from .synthesizer import Synthesizer
from .teardown import TeardownReport, teardown

__all__ = ["ArtifactDiff", "OutputTable", "SynthConfig", "Synthesizer", "TeardownReport", "teardown"]
