"""Tests for the local Keras character classifier."""

import json

import numpy as np
import pytest

pytest.importorskip("tensorflow")

from models import recognizer_model  # noqa: E402
from models.recognizer_model import CharacterClassifier, ClassifierConfig  # noqa: E402


class FakeModel:
    def __init__(self, scores):
        self.scores = np.array([scores])
        self.inputs = []

    def predict(self, batch):
        self.inputs.append(batch)
        return self.scores


@pytest.fixture
def model_dir(tmp_path):
    (tmp_path / "character_model.keras").write_bytes(b"weights")
    (tmp_path / "label_map.json").write_text(
        json.dumps({"Naruto Uzumaki": 0, "Sasuke Uchiha": 1, "Sakura Haruno": 2})
    )
    return tmp_path


@pytest.fixture
def fake_keras(monkeypatch):
    model = FakeModel([0.2, 0.7, 0.1])
    monkeypatch.setattr(recognizer_model, "load_model", lambda path: model)
    monkeypatch.setattr(
        recognizer_model, "load_img", lambda stream, target_size: np.zeros((*target_size, 3))
    )
    monkeypatch.setattr(recognizer_model, "img_to_array", lambda img: np.asarray(img))
    monkeypatch.setattr(recognizer_model, "preprocess_input", lambda arr: arr)
    return model


def test_predicts_top_k_labels(model_dir, fake_keras):
    classifier = CharacterClassifier(ClassifierConfig(model_dir=str(model_dir)))

    predictions = classifier.predict_characters(b"image", top_k=2)

    assert [name for name, _ in predictions] == ["Sasuke Uchiha", "Naruto Uzumaki"]
    assert predictions[0][1] == pytest.approx(0.7)
    assert fake_keras.inputs[0].shape == (1, 224, 224, 3)


def test_missing_model_raises(tmp_path):
    classifier = CharacterClassifier(ClassifierConfig(model_dir=str(tmp_path)))

    assert classifier.model is None
    with pytest.raises(ValueError, match="not available"):
        classifier.predict_characters(b"image")


@pytest.mark.asyncio
async def test_local_backend_recognizes_names(model_dir, fake_keras, image):
    from services.recognizer_service import (
        KerasRecognitionProvider,
        build_recognition_provider,
    )

    provider = build_recognition_provider(
        "local", model_dir=str(model_dir), top_k=3, min_confidence=0.15
    )

    assert isinstance(provider, KerasRecognitionProvider)
    assert await provider.recognize(image) == ["Sasuke Uchiha", "Naruto Uzumaki"]
