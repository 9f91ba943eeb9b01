"""Maps free-form category labels from the service onto :class:`Category`.

The service is asked to use the exact category names, but replies drift:
"Character", "characters", "人物简介", "lore".  Labels are resolved in three
steps:

1. exact match on a :class:`Category` value;
2. alias table lookup on the case-folded, trimmed label (English synonyms,
   enum member names, and the Chinese category names used by manuscripts
   written in Chinese);
3. the configured default, logged at ``warning``.

:meth:`CategoryNormalizer.normalize` never raises.
"""

from __future__ import annotations

from typing import Any

import structlog

from lorekeeper.models.knowledge import DEFAULT_CATEGORY, Category

logger = structlog.get_logger(logger_name=__name__)

DEFAULT_ALIASES: dict[str, Category] = {
    # character profile
    "character": Category.CHARACTER,
    "characters": Category.CHARACTER,
    "character profiles": Category.CHARACTER,
    "person": Category.CHARACTER,
    "people": Category.CHARACTER,
    "persona": Category.CHARACTER,
    "人物": Category.CHARACTER,
    "人物简介": Category.CHARACTER,
    "角色": Category.CHARACTER,
    # world setting
    "world": Category.WORLD,
    "worldbuilding": Category.WORLD,
    "world building": Category.WORLD,
    "setting": Category.WORLD,
    "lore": Category.WORLD,
    "世界观": Category.WORLD,
    "设定": Category.WORLD,
    # plot synopsis
    "plot": Category.PLOT,
    "synopsis": Category.PLOT,
    "storyline": Category.PLOT,
    "main plot": Category.PLOT,
    "剧情梗概": Category.PLOT,
    "剧情": Category.PLOT,
    # chapter summary
    "chapter": Category.CHAPTER,
    "chapter synopsis": Category.CHAPTER,
    "scene summary": Category.CHAPTER,
    "章节梗概": Category.CHAPTER,
    "章节": Category.CHAPTER,
    # subplot and foreshadowing
    "foreshadowing": Category.FORESHADOWING,
    "subplot": Category.FORESHADOWING,
    "subplots": Category.FORESHADOWING,
    "hint": Category.FORESHADOWING,
    "mystery": Category.FORESHADOWING,
    "支线伏笔": Category.FORESHADOWING,
    "伏笔": Category.FORESHADOWING,
    "支线": Category.FORESHADOWING,
    # item
    "items": Category.ITEM,
    "object": Category.ITEM,
    "artifact": Category.ITEM,
    "artefact": Category.ITEM,
    "weapon": Category.ITEM,
    "prop": Category.ITEM,
    "道具物品": Category.ITEM,
    "道具": Category.ITEM,
    "物品": Category.ITEM,
    # location
    "locations": Category.LOCATION,
    "place": Category.LOCATION,
    "places": Category.LOCATION,
    "scene": Category.LOCATION,
    "场景地点": Category.LOCATION,
    "地点": Category.LOCATION,
    "场景": Category.LOCATION,
    # timeline
    "time line": Category.TIMELINE,
    "chronology": Category.TIMELINE,
    "event": Category.TIMELINE,
    "events": Category.TIMELINE,
    "时间线": Category.TIMELINE,
    # general material
    "material": Category.MATERIAL,
    "materials": Category.MATERIAL,
    "misc": Category.MATERIAL,
    "miscellaneous": Category.MATERIAL,
    "notes": Category.MATERIAL,
    "other": Category.MATERIAL,
    "写作素材": Category.MATERIAL,
    "素材": Category.MATERIAL,
}


class CategoryNormalizer:
    """Resolve service-supplied labels to the closed category set.

    Parameters
    ----------
    default:
        Category returned for labels that match nothing.
    aliases:
        Extra ``label -> Category`` entries merged over :data:`DEFAULT_ALIASES`.
        Keys are case-folded on construction.
    """

    def __init__(
        self,
        default: Category = DEFAULT_CATEGORY,
        aliases: dict[str, Category] | None = None,
    ) -> None:
        self._default = default
        table: dict[str, Category] = {c.value.casefold(): c for c in Category}
        table.update({c.name.casefold(): c for c in Category})
        table.update(DEFAULT_ALIASES)
        for label, category in (aliases or {}).items():
            table[label.strip().casefold()] = category
        self._aliases = table

    @property
    def default(self) -> Category:
        return self._default

    def normalize(self, label: Any) -> Category:
        """Return the :class:`Category` for *label*; never raises."""
        if isinstance(label, Category):
            return label
        if not isinstance(label, str):
            logger.warning("unknown_category", label=repr(label), fallback=self._default.value)
            return self._default

        try:
            return Category(label)
        except ValueError:
            pass

        key = " ".join(label.split()).casefold()
        category = self._aliases.get(key)
        if category is not None:
            return category

        logger.warning("unknown_category", label=label, fallback=self._default.value)
        return self._default
