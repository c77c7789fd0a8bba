import io
import json
import logging
import os

import numpy as np
from tensorflow.keras.models import load_model  # type: ignore
from tensorflow.keras.applications.resnet50 import preprocess_input  # type: ignore
from tensorflow.keras.preprocessing.image import (  # type: ignore
    img_to_array,
    load_img,
)
from pydantic import BaseModel, ConfigDict


class ClassifierConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    model_dir: str
    image_size: tuple = (224, 224)
    model_file: str = "character_model.keras"
    label_map_file: str = "label_map.json"


class CharacterClassifier:
    """Image classifier over a fixed set of character labels."""

    def __init__(self, config: ClassifierConfig):
        self.config = config
        self.model = None
        self.labels: dict[int, str] = {}
        self.model_path = os.path.join(self.config.model_dir, self.config.model_file)
        self.label_map_path = os.path.join(
            self.config.model_dir, self.config.label_map_file
        )
        self._initialize_model()

    def _initialize_model(self):
        """Load the saved model and its label map if both are present."""
        if os.path.exists(self.model_path) and os.path.exists(self.label_map_path):
            logging.info("Loading character model from %s", self.model_path)
            self.model = load_model(self.model_path)
            self._load_label_map()
        else:
            logging.warning("No character model found in %s", self.config.model_dir)

    def _load_label_map(self):
        """Load the ``{label: index}`` map written alongside the model."""
        with open(self.label_map_path, "r") as f:
            label_map = json.load(f)
        self.labels = {int(idx): name for name, idx in label_map.items()}

    def _to_array(self, image_bytes: bytes):
        img = load_img(io.BytesIO(image_bytes), target_size=self.config.image_size)
        img_array = preprocess_input(img_to_array(img))
        return np.expand_dims(img_array, axis=0)

    def predict_characters(self, image_bytes: bytes, top_k: int = 5):
        """Return up to ``top_k`` ``(name, confidence)`` pairs, most likely first."""
        if self.model is None:
            raise ValueError("Character model is not available")

        predictions = self.model.predict(self._to_array(image_bytes))[0]
        ranked = np.argsort(predictions)[::-1][:top_k]
        return [
            (self.labels[int(idx)], float(predictions[idx]))
            for idx in ranked
            if int(idx) in self.labels
        ]
