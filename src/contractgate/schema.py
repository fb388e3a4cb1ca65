from __future__ import annotations

from typing import Any, Dict, List, Literal

from pydantic import BaseModel

GateStatusText = Literal["pass", "fail", "warning", "skipped", "disabled", "error"]


class ViolationDTO(BaseModel):
    kind: str
    method: str = ""
    path: str = ""
    reason: str
    detail: Dict[str, Any] = {}


class GateReportDTO(BaseModel):
    gate: str
    status: GateStatusText
    exit_code: int
    messages: List[str] = []
    violations: List[ViolationDTO] = []
    warnings: List[str] = []


class PreflightReportDTO(BaseModel):
    status: GateStatusText
    exit_code: int
    gates: List[GateReportDTO]
