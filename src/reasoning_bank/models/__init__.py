from .mcp_inputs import AnomalyParams, NetworkStateParams, NoveltyParams, PartitionParams, RankParams, SpikeParams
from .pattern import Pattern, SpikeEvent, Trajectory, UsageLink

__all__ = [
    "AnomalyParams",
    "NetworkStateParams",
    "NoveltyParams",
    "PartitionParams",
    "Pattern",
    "RankParams",
    "SpikeEvent",
    "SpikeParams",
    "Trajectory",
    "UsageLink",
]
