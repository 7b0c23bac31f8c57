"""Safety classification of package identifiers.

Lookup order:
1. Exact user override
2. Longest matching user override prefix
3. Exact catalog entry
4. Longest matching catalog prefix
5. ``unknown``
"""


from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, replace
from typing import Literal

from debloatctl.classifier.catalog import CatalogEntry, SafetyCatalog, UserOverride
from debloatctl.models.package import Package, SafetyTier

logger = logging.getLogger(__name__)

MatchSource = Literal["override", "catalog", "default"]


@dataclass(frozen=True, slots=True)
class Classification:
    """Full result of classifying a package.

    Attributes:
        package_id: Classified package.
        tier: Resulting safety tier.
        source: Where the tier came from.
        pattern: Pattern that matched (None for the default).
        rationale: Explanation attached to the matching rule.
        recommended_action: Suggested action from the catalog, if any.
    """

    package_id: str
    tier: SafetyTier
    source: MatchSource
    pattern: str | None = None
    rationale: str = ""
    recommended_action: str | None = None


@dataclass(frozen=True, slots=True)
class _Rule:
    pattern: str
    tier: SafetyTier
    rationale: str
    recommended_action: str | None
    source: MatchSource

    @property
    def prefix(self) -> str:
        return self.pattern.rstrip("*")


class _RuleLayer:
    """Exact and prefix rules of one source, matched exact-first."""

    def __init__(self, rules: list[_Rule]) -> None:
        self._exact: dict[str, _Rule] = {}
        prefixes: dict[str, _Rule] = {}
        for rule in rules:
            if rule.pattern.endswith("*"):
                prefixes[rule.prefix] = rule
            else:
                self._exact[rule.pattern] = rule
        # Longest prefix first so the first hit is the most specific one
        self._prefixes = tuple(sorted(prefixes.values(), key=lambda r: -len(r.prefix)))

    def match(self, package_id: str) -> _Rule | None:
        rule = self._exact.get(package_id)
        if rule is not None:
            return rule
        return next((r for r in self._prefixes if package_id.startswith(r.prefix)), None)


class SafetyClassifier:
    """Maps package identifiers to safety tiers.

    The classifier is built once from an immutable catalog and a set of
    user overrides; classify() does no I/O and always returns the same
    tier for the same identifier.

    Any matching user override, exact or prefix, takes precedence over
    every catalog rule, so marking ``com.vendor.*`` unsafe also covers
    packages the catalog lists individually.

    When constructed without a catalog (degraded mode), every package is
    classified as ``unknown`` and overrides are ignored, so nothing is
    ever treated as safe.

    Example:
        >>> classifier = SafetyClassifier(load_catalog(), load_overrides())
        >>> classifier.classify("com.facebook.appmanager")
        <SafetyTier.SAFE: 'safe'>
    """

    def __init__(
        self,
        catalog: SafetyCatalog | None,
        overrides: Mapping[str, UserOverride] | None = None,
    ) -> None:
        """Initialize the classifier.

        Args:
            catalog: Loaded catalog, or None for degraded mode.
            overrides: User overrides keyed by pattern.
        """
        self._catalog = catalog
        self._layers: tuple[_RuleLayer, ...] = ()

        if catalog is None:
            logger.warning("Safety catalog unavailable; all packages classified as unknown")
            return

        override_rules = [
            _Rule(
                pattern=pattern,
                tier=override.tier,
                rationale=override.rationale,
                recommended_action=None,
                source="override",
            )
            for pattern, override in (overrides or {}).items()
        ]
        catalog_rules = [self._rule_from_entry(entry) for entry in catalog.entries]
        self._layers = (_RuleLayer(override_rules), _RuleLayer(catalog_rules))

    @property
    def degraded(self) -> bool:
        """Check if the classifier runs without a catalog."""
        return self._catalog is None

    @property
    def catalog_version(self) -> str | None:
        """Version of the loaded catalog, or None in degraded mode."""
        return self._catalog.version if self._catalog is not None else None

    def classify(self, package_id: str) -> SafetyTier:
        """Return the safety tier for a package identifier."""
        return self.lookup(package_id).tier

    def lookup(self, package_id: str) -> Classification:
        """Classify a package and report which rule matched."""
        rule = next(
            (r for r in (layer.match(package_id) for layer in self._layers) if r is not None),
            None,
        )

        if rule is None:
            return Classification(package_id=package_id, tier=SafetyTier.UNKNOWN, source="default")

        return Classification(
            package_id=package_id,
            tier=rule.tier,
            source=rule.source,
            pattern=rule.pattern,
            rationale=rule.rationale,
            recommended_action=rule.recommended_action,
        )

    def classify_package(self, package: Package) -> Package:
        """Return a copy of a package with its tier filled in."""
        return replace(package, tier=self.classify(package.package_id))

    @staticmethod
    def _rule_from_entry(entry: CatalogEntry) -> _Rule:
        return _Rule(
            pattern=entry.pattern,
            tier=entry.tier,
            rationale=entry.rationale,
            recommended_action=entry.recommended_action,
            source="catalog",
        )
