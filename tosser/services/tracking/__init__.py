from .transfer_statistics import StatisticsAggregator, StatisticsSaver

__all__ = ["StatisticsAggregator", "StatisticsSaver"]
