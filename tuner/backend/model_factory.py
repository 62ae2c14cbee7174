import inspect
from typing import Any, Dict, List, Optional

from sklearn.utils import all_estimators


class ModelFactory:
    """
    Builds scikit-learn regressors by class name.

    The registry covers every regressor scikit-learn exposes; arguments an
    estimator does not accept are dropped before construction.
    """

    MODELS: Dict[str, type] = dict(all_estimators(type_filter='regressor'))

    # Ensembles whose first k members reproduce a model fitted with n_estimators=k
    SUBMODEL_CAPABLE = ('RandomForestRegressor', 'ExtraTreesRegressor')

    @classmethod
    def create(cls, model_name: str, params: Optional[Dict[str, Any]] = None) -> Any:
        if model_name not in cls.MODELS:
            raise ValueError(f"Unknown model name: {model_name}. Available: {cls.get_available_models()}")

        model_class = cls.MODELS[model_name]
        return model_class(**cls._filter_params(model_class, params or {}))

    @classmethod
    def get_available_models(cls) -> List[str]:
        return sorted(cls.MODELS)

    @staticmethod
    def _filter_params(model_class, params: Dict[str, Any]) -> Dict[str, Any]:
        sig = inspect.signature(model_class.__init__)
        if any(p.kind == p.VAR_KEYWORD for p in sig.parameters.values()):
            return dict(params)
        accepted = {
            p.name for p in sig.parameters.values()
            if p.kind in (p.POSITIONAL_OR_KEYWORD, p.KEYWORD_ONLY)
        }
        return {k: v for k, v in params.items() if k in accepted}
