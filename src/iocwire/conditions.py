from iocwire._internal.conditions import ConditionEvaluator, ExpressionConditionEvaluator

__all__ = ["ConditionEvaluator", "ExpressionConditionEvaluator"]
