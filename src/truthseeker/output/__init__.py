"""Output generation: evidence reports, persona watermarking, search links."""

from truthseeker.output.report import CompiledReport, ReportCompiler, generate_case_id
from truthseeker.output.watermark import apply_simulation_watermark

__all__ = [
    "CompiledReport",
    "ReportCompiler",
    "apply_simulation_watermark",
    "generate_case_id",
]
