"""
Relationship detector.

Runs the detection rules over a snapshot of the store, upserts what
they find and removes the derived edges they no longer find. A failing
pair or rule is logged and reported without aborting the rest of the
run; only an unreachable store does.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from fraudlink.config import Settings, settings as default_settings
from fraudlink.exceptions import StoreUnavailableError
from fraudlink.graph.client import GraphClient
from fraudlink.graph.edges import RelationshipType
from fraudlink.graph.schema import utcnow
from fraudlink.detection.rules import (
    DetectionRule,
    RuleFailure,
    RuleResult,
    default_rules,
)
from fraudlink.detection.snapshot import DetectionScope, GraphSnapshot, load_snapshot

logger = logging.getLogger(__name__)


@dataclass
class RuleReport:
    """Outcome of one rule within a detection run."""

    rule: str
    edges_created: int = 0
    edges_updated: int = 0
    edges_removed: int = 0
    nodes_upserted: int = 0
    pairs_examined: int = 0
    pairs_dropped: int = 0
    failed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "edges_created": self.edges_created,
            "edges_updated": self.edges_updated,
            "edges_removed": self.edges_removed,
            "nodes_upserted": self.nodes_upserted,
            "pairs_examined": self.pairs_examined,
            "pairs_dropped": self.pairs_dropped,
            "failed": self.failed,
        }


@dataclass
class DetectionReport:
    """Result of a detection run."""

    scope: Optional[str] = None
    rules: dict[str, RuleReport] = field(default_factory=dict)
    failures: list[RuleFailure] = field(default_factory=list)
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None

    @property
    def edges_created(self) -> dict[str, int]:
        """New edges per rule."""
        return {name: r.edges_created for name, r in self.rules.items()}

    @property
    def total_edges_created(self) -> int:
        return sum(r.edges_created for r in self.rules.values())

    @property
    def pairs_dropped(self) -> dict[str, int]:
        return {name: r.pairs_dropped for name, r in self.rules.items() if r.pairs_dropped}

    @property
    def failed_rules(self) -> list[str]:
        return [name for name, r in self.rules.items() if r.failed]

    def to_dict(self) -> dict[str, Any]:
        return {
            "scope": self.scope,
            "edges_created": self.edges_created,
            "total_edges_created": self.total_edges_created,
            "rules": [r.to_dict() for r in self.rules.values()],
            "failures": [f.to_dict() for f in self.failures],
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


class RelationshipDetector:
    """
    Orchestrates the detection rules.

    Usage:
        detector = RelationshipDetector(client)
        report = await detector.run()
        report = await detector.run(scope_id="user-1")
    """

    def __init__(
        self,
        client: GraphClient,
        settings: Optional[Settings] = None,
        rules: Optional[list[DetectionRule]] = None,
    ):
        """
        Initialize the detector.

        Args:
            client: Graph store handle
            settings: Thresholds, caps and concurrency (global settings if None)
            rules: Rules to run (standard rule set if None)
        """
        self.client = client
        self.settings = settings or default_settings
        self.rules = rules if rules is not None else default_rules(self.settings)

    def add_rule(self, rule: DetectionRule) -> None:
        """Add a custom detection rule."""
        self.rules.append(rule)

    def get_rule(self, name: str) -> DetectionRule:
        for rule in self.rules:
            if rule.name == name:
                return rule
        raise ValueError(f"Unknown detection rule: {name}")

    async def run(self, scope_id: Optional[str] = None) -> DetectionReport:
        """
        Run every rule, upsert the resulting nodes and edges and delete
        stale edges of the rule-owned types.

        Args:
            scope_id: Restrict pair rules to pairs touching this User or
                Transaction. None scans everything.

        Returns:
            DetectionReport with per-rule counts and failures

        Raises:
            EntityNotFoundError: scope_id is neither a User nor a Transaction
            StoreUnavailableError: the store cannot be reached
        """
        snapshot = await load_snapshot(self.client)
        scope = DetectionScope.resolve(snapshot, scope_id)
        report = DetectionReport(scope=scope_id)

        logger.info(
            f"Running {len(self.rules)} detection rules over {len(snapshot.users)} users, "
            f"{len(snapshot.transactions)} transactions"
            + (f" (scope {scope_id})" if scope_id else "")
        )

        if self.settings.parallel_detection:
            tasks = [
                asyncio.create_task(self._apply_rule(rule, snapshot, scope))
                for rule in self.rules
            ]
            try:
                outcomes = await asyncio.gather(*tasks)
            except BaseException:
                # Stop the remaining rules from writing after the run has failed
                for task in tasks:
                    task.cancel()
                await asyncio.gather(*tasks, return_exceptions=True)
                raise
        else:
            outcomes = [await self._apply_rule(rule, snapshot, scope) for rule in self.rules]

        for rule_report, failures in outcomes:
            report.rules[rule_report.rule] = rule_report
            report.failures.extend(failures)

        report.finished_at = utcnow()
        logger.info(
            f"Detection finished: {report.total_edges_created} new edges, "
            f"{len(report.failures)} failures"
        )
        return report

    async def run_rule(self, name: str, scope_id: Optional[str] = None) -> DetectionReport:
        """Run a single named rule."""
        rule = self.get_rule(name)
        snapshot = await load_snapshot(self.client)
        scope = DetectionScope.resolve(snapshot, scope_id)
        report = DetectionReport(scope=scope_id)
        rule_report, failures = await self._apply_rule(rule, snapshot, scope)
        report.rules[rule.name] = rule_report
        report.failures.extend(failures)
        report.finished_at = utcnow()
        return report

    async def _apply_rule(
        self,
        rule: DetectionRule,
        snapshot: GraphSnapshot,
        scope: DetectionScope,
    ) -> tuple[RuleReport, list[RuleFailure]]:
        rule_report = RuleReport(rule=rule.name)

        try:
            result = rule.detect(snapshot, scope)
        except Exception as e:
            logger.warning(f"Detection rule {rule.name} failed: {e}")
            rule_report.failed = True
            return rule_report, [RuleFailure(rule=rule.name, error=str(e))]

        failures = list(result.failures)
        await self._write(result, rule_report, failures)
        await self._prune(rule, result, scope, rule_report, failures)

        logger.info(
            f"{rule.name}: {rule_report.edges_created} created, "
            f"{rule_report.edges_updated} updated, "
            f"{rule_report.edges_removed} removed, "
            f"{rule_report.pairs_examined} pairs examined"
            + (f", {rule_report.pairs_dropped} dropped by cap" if rule_report.pairs_dropped else "")
        )
        return rule_report, failures

    async def _write(
        self,
        result: RuleResult,
        rule_report: RuleReport,
        failures: list[RuleFailure],
    ) -> None:
        rule_report.pairs_examined = result.pairs_examined
        rule_report.pairs_dropped = result.pairs_dropped

        for node in result.nodes:
            try:
                await self.client.upsert_entity(node)
                rule_report.nodes_upserted += 1
            except StoreUnavailableError:
                raise
            except Exception as e:
                logger.warning(f"{result.rule}: failed to upsert {node.KIND.value} {node.id}: {e}")
                failures.append(RuleFailure(rule=result.rule, subject=node.id, error=str(e)))

        for edge in result.edges:
            try:
                created = await self.client.upsert_relationship(edge)
            except StoreUnavailableError:
                raise
            except Exception as e:
                logger.warning(f"{result.rule}: failed to upsert {edge.id}: {e}")
                failures.append(RuleFailure(rule=result.rule, subject=edge.id, error=str(e)))
                continue
            if created:
                rule_report.edges_created += 1
            else:
                rule_report.edges_updated += 1

    async def _prune(
        self,
        rule: DetectionRule,
        result: RuleResult,
        scope: DetectionScope,
        rule_report: RuleReport,
        failures: list[RuleFailure],
    ) -> None:
        """
        Delete stored edges of the rule's types that this run no longer derives.

        A global run owns every edge of those types. A scoped run only owns
        the edges with the scope subject as an endpoint.
        """
        emitted: dict[RelationshipType, set[tuple[str, str]]] = {}
        for edge in result.edges:
            emitted.setdefault(edge.type, set()).add(_pair_key(edge.type, edge.from_id, edge.to_id))

        for rel_type in rule.relationship_types:
            keep = emitted.get(rel_type, set())
            try:
                if scope.is_global:
                    stored = await self.client.list_relationships(rel_type)
                else:
                    stored = await self.client.list_relationships(
                        rel_type, scope.subject_id, scope.kind
                    )
                stale = [p for p in stored if _pair_key(rel_type, *p) not in keep]
                if not stale:
                    continue
                rule_report.edges_removed += await self.client.delete_relationships(
                    rel_type, stale
                )
            except StoreUnavailableError:
                raise
            except Exception as e:
                logger.warning(f"{result.rule}: failed to remove stale {rel_type.value} edges: {e}")
                failures.append(RuleFailure(rule=result.rule, subject=rel_type.value, error=str(e)))


def _pair_key(rel_type: RelationshipType, from_id: str, to_id: str) -> tuple[str, str]:
    if rel_type.is_symmetric and from_id > to_id:
        return to_id, from_id
    return from_id, to_id
