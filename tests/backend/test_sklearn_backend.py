import numpy as np
import pandas as pd
import pytest
from sklearn.ensemble import RandomForestRegressor

from tuner.backend import PreprocessingStep, SklearnBackend, tune
from tuner.candidates import Candidate
from tuner.utils.exceptions import ConfigurationError


@pytest.fixture
def frame():
    rng = np.random.default_rng(4)
    x = rng.uniform(0, 1, 60)
    return pd.DataFrame({"x": x, "z": rng.normal(size=60), "y": 3 * x + rng.normal(0, 0.05, 60)})


class TestSklearnBackend:

    def test_tuned_parameters_are_split_by_stage(self):
        backend = SklearnBackend(
            "Ridge", outcome="y",
            steps=[PreprocessingStep("pca", "PCA", {"n_components": tune("components")})],
            model_args={"alpha": tune("alpha"), "fit_intercept": True}
        )
        assert backend.preprocessing_parameters == ("components",)
        assert backend.model_parameters == ("alpha",)
        prep, model = backend.split_parameters(Candidate(components=1, alpha=0.5))
        assert prep == Candidate(components=1)
        assert model == Candidate(alpha=0.5)

    def test_fit_and_predict(self, frame):
        backend = SklearnBackend(
            "Ridge", outcome="y", predictors=["x"],
            steps=[PreprocessingStep("scale", "StandardScaler")],
            model_args={"alpha": tune("alpha")}
        )
        artifact = backend.fit_preprocessing(frame, {})
        processed = backend.apply_preprocessing(artifact, frame)
        assert processed.X.shape == (60, 1)

        model = backend.fit_model(processed, {"alpha": 0.01})
        assert model.alpha == 0.01
        pred = backend.predict(model, processed)
        assert pred.shape == (60,)
        assert np.corrcoef(pred, frame["y"])[0, 1] > 0.99

    def test_all_columns_but_outcome_are_predictors_by_default(self, frame):
        backend = SklearnBackend("LinearRegression", outcome="y")
        artifact = backend.fit_preprocessing(frame, {})
        assert artifact.predictors == ["x", "z"]

    def test_missing_columns_raise(self, frame):
        with pytest.raises(KeyError):
            SklearnBackend("Ridge", outcome="y", predictors=["w"]).fit_preprocessing(frame, {})
        with pytest.raises(KeyError):
            SklearnBackend("Ridge", outcome="target").fit_preprocessing(frame, {})

    def test_check_candidates(self):
        backend = SklearnBackend("Ridge", outcome="y", model_args={"alpha": tune("alpha")})
        backend.check_candidates(["alpha"])
        with pytest.raises(ValueError, match="not tuned"):
            backend.check_candidates(["alpha", "l1_ratio"])

    def test_invalid_definitions(self):
        with pytest.raises(ConfigurationError):
            SklearnBackend("NotAModel", outcome="y")
        with pytest.raises(ConfigurationError):
            PreprocessingStep("odd", "NotATransformer")
        with pytest.raises(ConfigurationError):
            SklearnBackend("Ridge", outcome="y", model_args={"alpha": tune("p")},
                           steps=[PreprocessingStep("pca", "PCA", {"n_components": tune("p")})])

    def test_from_config_parses_tune_markers(self):
        config = {
            "data": {"outcome": "y"},
            "model": {"name": "RandomForestRegressor",
                      "args": {"n_estimators": {"tune": "trees"}, "random_state": 0}},
            "preprocessing": {"steps": [
                {"name": "spline", "transformer": "SplineTransformer", "args": {"n_knots": {"tune": "knots"}}}
            ]}
        }
        backend = SklearnBackend.from_config(config)
        assert backend.outcome == "y"
        assert backend.preprocessing_parameters == ("knots",)
        assert backend.model_parameters == ("trees",)
        assert backend.submodel_parameter == "trees"

    def test_forest_submodels_match_smaller_forests(self, frame):
        backend = SklearnBackend("RandomForestRegressor", outcome="y", predictors=["x"],
                                 model_args={"n_estimators": tune("trees"), "random_state": 3})
        processed = backend.apply_preprocessing(backend.fit_preprocessing(frame, {}), frame)
        big = backend.fit_model(processed, {"trees": 20})

        preds = backend.predict_submodels(big, processed, [5, 20])
        small = RandomForestRegressor(n_estimators=5, random_state=3).fit(processed.X, processed.y)
        np.testing.assert_allclose(preds[5], small.predict(processed.X))
        np.testing.assert_allclose(preds[20], backend.predict(big, processed))

    def test_empty_submodel_rejected(self, frame):
        backend = SklearnBackend("RandomForestRegressor", outcome="y", predictors=["x"],
                                 model_args={"n_estimators": tune("trees"), "random_state": 3})
        processed = backend.apply_preprocessing(backend.fit_preprocessing(frame, {}), frame)
        big = backend.fit_model(processed, {"trees": 5})

        with pytest.raises(ValueError, match="trees must be >= 1"):
            backend.predict_submodels(big, processed, [0, 5])

    def test_submodels_unsupported_without_forest(self, frame):
        backend = SklearnBackend("Ridge", outcome="y", model_args={"alpha": tune("alpha")})
        assert backend.submodel_parameter is None
        processed = backend.apply_preprocessing(backend.fit_preprocessing(frame, {}), frame)
        model = backend.fit_model(processed, {"alpha": 1.0})
        with pytest.raises(NotImplementedError):
            backend.predict_submodels(model, processed, [1.0])
