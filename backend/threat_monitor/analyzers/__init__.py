"""AI分析模块"""
from threat_monitor.analyzers.llm_client import LLMClient, ClassifierError
from threat_monitor.analyzers.classifier import ThreatClassifier
from threat_monitor.analyzers.threat_parser import ThreatRecord, StrategicFlag, parse_threat_analysis
from threat_monitor.analyzers.strategic import is_strategic
from threat_monitor.analyzers.summary import AlertSummarizer

__all__ = [
    "LLMClient",
    "ClassifierError",
    "ThreatClassifier",
    "ThreatRecord",
    "StrategicFlag",
    "parse_threat_analysis",
    "is_strategic",
    "AlertSummarizer",
]
