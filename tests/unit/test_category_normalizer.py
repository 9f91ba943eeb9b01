"""Unit tests for CategoryNormalizer."""

from __future__ import annotations

import pytest

from lorekeeper.models.knowledge import Category
from lorekeeper.services.category_normalizer import CategoryNormalizer


class TestCategoryNormalizer:
    @pytest.fixture()
    def normalizer(self) -> CategoryNormalizer:
        return CategoryNormalizer()

    @pytest.mark.parametrize("category", list(Category))
    def test_exact_values_round_trip(self, normalizer: CategoryNormalizer, category: Category) -> None:
        assert normalizer.normalize(category.value) is category

    @pytest.mark.parametrize(
        ("label", "expected"),
        [
            ("Character", Category.CHARACTER),
            ("  CHARACTERS ", Category.CHARACTER),
            ("Character   Profile", Category.CHARACTER),
            ("lore", Category.WORLD),
            ("FORESHADOWING", Category.FORESHADOWING),
            ("人物简介", Category.CHARACTER),
            ("支线伏笔", Category.FORESHADOWING),
            ("场景地点", Category.LOCATION),
            ("写作素材", Category.MATERIAL),
            ("material", Category.MATERIAL),
        ],
    )
    def test_aliases(self, normalizer: CategoryNormalizer, label: str, expected: Category) -> None:
        assert normalizer.normalize(label) is expected

    def test_category_instance_passes_through(self, normalizer: CategoryNormalizer) -> None:
        assert normalizer.normalize(Category.TIMELINE) is Category.TIMELINE

    @pytest.mark.parametrize("label", ["spaceship", "", None, 42, ["character"]])
    def test_unknown_labels_fall_back_to_default(
        self, normalizer: CategoryNormalizer, label: object
    ) -> None:
        assert normalizer.normalize(label) is Category.MATERIAL

    def test_custom_default(self) -> None:
        normalizer = CategoryNormalizer(default=Category.PLOT)
        assert normalizer.default is Category.PLOT
        assert normalizer.normalize("unheard of") is Category.PLOT

    def test_custom_aliases_are_case_folded(self) -> None:
        normalizer = CategoryNormalizer(aliases={"Creature": Category.CHARACTER})
        assert normalizer.normalize("creature") is Category.CHARACTER
        assert normalizer.normalize("CREATURE") is Category.CHARACTER
