from movierec.eval.eval import EvaluationMetrics, evaluate, evaluate_model, format_metrics

__all__ = ["EvaluationMetrics", "evaluate", "evaluate_model", "format_metrics"]
