from dataclasses import dataclass, field


@dataclass
class RunReport:
    unit: str
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def as_dict(self) -> dict:
        return {
            "unit": self.unit,
            "succeeded": list(self.succeeded),
            "failed": dict(self.failed),
        }


class PipelineRunError(RuntimeError):
    """A run stopped early; ``report`` lists what was already committed."""

    def __init__(self, message: str, report: dict):
        super().__init__(message)
        self.report = report
