"""
Contract of the external rule-extraction assistant.

The assistant reads legislation or a taxpayer's spreadsheets and proposes
candidate rules as plain mappings. Its output is only a suggestion: every
candidate goes through RuleValidator before RuleStore activates it.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

CandidateRule = Dict[str, Any]

EXTRACTION_SOURCE = "extraction_assistant"


class RuleExtractionAssistant(ABC):
    """Producer of candidate rules."""

    @abstractmethod
    def propose_rules(self, taxpayer_id: str, jurisdiction: Optional[str] = None) -> List[CandidateRule]:
        """
        Propose candidate rules for a taxpayer.

        Each mapping follows the Rule schema (label, kind, conditions,
        calculations, priority, confidence); the id is optional and is
        generated when missing.

        Args:
            taxpayer_id: CNPJ digits of the taxpayer
            jurisdiction: UF the rules should target, if known

        Returns:
            Candidate rule mappings, possibly empty

        Raises:
            Exception: Any I/O failure; RuleStore retries and then records
                it as an observation
        """
        pass
