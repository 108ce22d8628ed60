"""
Services Module - run orchestration for the apuração engine.

Application Services:
- ApuracaoService: rule-based (ICMS-style) runs with secondary-levy carryover
- FederalApuracaoService: PIS/COFINS/IRPJ/CSLL runs with benefit stacking

Infrastructure:
- logging_config: structured logging and per-run loggers
"""

from .logging_config import configure_logging, get_logger, RunLogger


def get_apuracao_service(rule_store, **kwargs):
    """Get an ApuracaoService bound to a rule store."""
    from .apuracao_service import ApuracaoService
    return ApuracaoService(rule_store, **kwargs)


def get_federal_service(**kwargs):
    """Get a FederalApuracaoService instance."""
    from .federal_service import FederalApuracaoService
    return FederalApuracaoService(**kwargs)


__all__ = [
    'configure_logging',
    'get_logger',
    'RunLogger',
    'get_apuracao_service',
    'get_federal_service',
]
