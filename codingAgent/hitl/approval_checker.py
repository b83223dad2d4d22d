"""Approval policy for tool calls."""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional

import yaml

from codingAgent.tools.base import ToolKind

LOGGER = logging.getLogger(__name__)

RISK_LEVELS_ORDER = ["critical", "high", "medium", "low"]


@dataclass
class ApprovalDecision:
    """审批决策结果"""

    needs_approval: bool
    reason: str = ""
    risk_level: str = "low"  # low, medium, high, critical


class ApprovalChecker:
    """工具调用审批检测器

    五层规则（优先级从高到低）：
    1. 工具自定义检查器（代码注册）
    2. 全局风险模式（跨工具，YAML global.risk_patterns）
    3. 工具配置规则（YAML tools.<name>）
    4. 内置规则（shell 高危命令、内网地址）
    5. 工具类型策略：EDIT / EXECUTE 类工具需要确认，除非 auto_approve_writes
    """

    def __init__(self, config_path: Optional[Path] = None, auto_approve_writes: bool = False):
        self.config_path = config_path
        self.auto_approve_writes = auto_approve_writes
        self.rules = self._load_config() if config_path else {}
        self.custom_checkers: Dict[str, Callable[[Mapping[str, Any]], ApprovalDecision]] = {}
        self.global_patterns = self._load_global_patterns()

    def _load_config(self) -> dict:
        if not self.config_path or not Path(self.config_path).exists():
            return {}

        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                return yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            LOGGER.warning(f"Failed to load approval config {self.config_path}: {e}")
            return {}

    def _load_global_patterns(self) -> Dict[str, Any]:
        risk_patterns = self.rules.get("global", {}).get("risk_patterns", {})

        patterns_by_level = {}
        for level, pattern_config in risk_patterns.items():
            if isinstance(pattern_config, dict):
                patterns_by_level[level] = {
                    "patterns": pattern_config.get("patterns", []),
                    "action": pattern_config.get("action", "require_approval"),
                    "reason": pattern_config.get("reason", f"Matches global {level} risk pattern"),
                }
        return patterns_by_level

    def register_checker(self, tool_name: str, checker: Callable[[Mapping[str, Any]], ApprovalDecision]):
        """注册工具自定义审批检测函数（接收 args，返回 ApprovalDecision）"""
        self.custom_checkers[tool_name] = checker

    def check(self, tool_name: str, args: Mapping[str, Any], kind: Optional[ToolKind] = None) -> ApprovalDecision:
        """检查工具调用是否需要审批"""
        if tool_name in self.custom_checkers:
            return self.custom_checkers[tool_name](args)

        decision = self._check_global_patterns(args)
        if decision.needs_approval:
            return decision

        if tool_name in self.rules.get("tools", {}):
            decision = self._check_config_rules(tool_name, args)
            if decision.needs_approval:
                return decision

        decision = self._check_builtin_rules(tool_name, args)
        if decision.needs_approval:
            return decision

        return self._check_kind(tool_name, kind)

    @staticmethod
    def _args_text(args: Mapping[str, Any]) -> str:
        return " ".join(str(v) for v in args.values())

    def _check_global_patterns(self, args: Mapping[str, Any]) -> ApprovalDecision:
        if not self.global_patterns:
            return ApprovalDecision(needs_approval=False)

        args_str = self._args_text(args)
        for risk_level in RISK_LEVELS_ORDER:
            if risk_level not in self.global_patterns:
                continue

            pattern_config = self.global_patterns[risk_level]
            if pattern_config["action"] != "require_approval":
                continue
            for pattern in pattern_config["patterns"]:
                if re.search(pattern, args_str, re.IGNORECASE):
                    return ApprovalDecision(
                        needs_approval=True,
                        reason=pattern_config["reason"],
                        risk_level=risk_level,
                    )

        return ApprovalDecision(needs_approval=False)

    def _check_config_rules(self, tool_name: str, args: Mapping[str, Any]) -> ApprovalDecision:
        tool_config = self.rules["tools"][tool_name] or {}

        if not tool_config.get("enabled", True):
            return ApprovalDecision(needs_approval=False)

        args_str = self._args_text(args)
        for risk_level, pattern_list in (tool_config.get("patterns") or {}).items():
            for pattern in pattern_list:
                if not re.search(pattern, args_str, re.IGNORECASE):
                    continue
                action = tool_config.get("actions", {}).get(risk_level, "require_approval")
                if action == "require_approval":
                    return ApprovalDecision(
                        needs_approval=True,
                        reason=f"Matches {risk_level} risk pattern: {pattern}",
                        risk_level=risk_level,
                    )

        return ApprovalDecision(needs_approval=False)

    def _check_builtin_rules(self, tool_name: str, args: Mapping[str, Any]) -> ApprovalDecision:
        if tool_name == "run_shell_command":
            return self._check_shell_command(str(args.get("command", "")))

        if tool_name == "web_fetch":
            return self._check_web_fetch(str(args.get("url", "")))

        return ApprovalDecision(needs_approval=False)

    def _check_kind(self, tool_name: str, kind: Optional[ToolKind]) -> ApprovalDecision:
        if kind is not None and kind.mutates_workspace and not self.auto_approve_writes:
            return ApprovalDecision(
                needs_approval=True,
                reason=f"{tool_name} modifies the workspace",
                risk_level="medium",
            )
        return ApprovalDecision(needs_approval=False)

    def _check_shell_command(self, command: str) -> ApprovalDecision:
        high_risk_patterns = [
            r"\brm\s+-rf\b",
            r"\bsudo\b",
            r"\bchmod\s+777\b",
            r"\bmkfs\b",
            r"\bdd\b.*\bif=/dev/",
            r">\s*/dev/",
            r"\bgit\s+push\s+.*--force\b",
        ]
        for pattern in high_risk_patterns:
            if re.search(pattern, command, re.IGNORECASE):
                return ApprovalDecision(
                    needs_approval=True,
                    reason="High-risk shell operation",
                    risk_level="high",
                )

        medium_risk_patterns = [
            r"\bcurl\b",
            r"\bwget\b",
            r"\bgit\s+clone\b",
            r"\bpip\s+install\b",
            r"\bnpm\s+install\b",
        ]
        for pattern in medium_risk_patterns:
            if re.search(pattern, command, re.IGNORECASE):
                return ApprovalDecision(
                    needs_approval=True,
                    reason="Network or install operation",
                    risk_level="medium",
                )

        return ApprovalDecision(needs_approval=False)

    def _check_web_fetch(self, url: str) -> ApprovalDecision:
        # 本地/内网地址
        local_patterns = [
            r"localhost",
            r"127\.0\.0\.1",
            r"192\.168\.",
            r"//10\.",
            r"172\.(1[6-9]|2[0-9]|3[0-1])\.",
        ]
        for pattern in local_patterns:
            if re.search(pattern, url, re.IGNORECASE):
                return ApprovalDecision(
                    needs_approval=True,
                    reason="Request targets a local or private network address",
                    risk_level="medium",
                )

        return ApprovalDecision(needs_approval=False)
