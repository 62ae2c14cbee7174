import pytest
from sklearn.ensemble import ExtraTreesRegressor
from sklearn.linear_model import Ridge
from sklearn.neighbors import KNeighborsRegressor

from tuner.backend import ModelFactory


def test_create_model():
    model = ModelFactory.create('ExtraTreesRegressor', {'n_estimators': 10, 'random_state': 42})

    assert isinstance(model, ExtraTreesRegressor)
    assert model.n_estimators == 10
    assert model.random_state == 42


def test_unknown_model_error():
    with pytest.raises(ValueError, match="Unknown model name"):
        ModelFactory.create('SuperAdvancedAIModel')


def test_parameter_filtering():
    """Arguments the estimator does not accept are dropped (KNN has no random_state)."""
    model = ModelFactory.create('KNeighborsRegressor', {'n_neighbors': 3, 'random_state': 123})

    assert isinstance(model, KNeighborsRegressor)
    assert model.n_neighbors == 3
    assert not hasattr(model, 'random_state')


def test_defaults_without_params():
    assert isinstance(ModelFactory.create('Ridge'), Ridge)


def test_get_available_models():
    models = ModelFactory.get_available_models()
    assert 'Ridge' in models
    assert 'RandomForestRegressor' in models
    assert set(ModelFactory.SUBMODEL_CAPABLE) <= set(models)
