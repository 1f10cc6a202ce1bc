"""
Rollout controller for the Luma fleet.

A rollout resolves the fleet, updates and probes every instance, runs an
environment-level health gate and reports one verdict. Rollback is the same
operation run with an older artifact reference.
"""

import json
import logging
import os
import threading
import time
from datetime import datetime
from typing import Optional

from errors import DeployError, UpdateFailed
from models import (
    Environment,
    FleetHealth,
    HealthStatus,
    InstanceRef,
    InstanceResult,
    InstanceState,
    RolloutPhase,
    RolloutReport,
)
from strategies import SequentialStrategy

logger = logging.getLogger(__name__)


class RolloutController:
    """Sequences updates and health probes across a fleet."""

    def __init__(
        self,
        config,
        resolver,
        updater,
        prober,
        notifier,
        strategy=None,
        release_marker=None,
    ):
        """
        Initialize the controller.

        Args:
            config: DeployConfig for this run
            resolver: TargetResolver
            updater: InstanceUpdater
            prober: HealthProber
            notifier: Best-effort notifier with a notify(message, level) method
            strategy: Concurrency strategy (defaults to sequential)
            release_marker: Optional ReleaseMarker; every attempt and every
                succeeded rollout is recorded in it
        """
        self.config = config
        self.resolver = resolver
        self.updater = updater
        self.prober = prober
        self.notifier = notifier
        self.strategy = strategy or SequentialStrategy()
        self.release_marker = release_marker

    def run(
        self,
        environment: str,
        artifact_ref: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> RolloutReport:
        """
        Roll an artifact reference out to every instance of an environment.

        Args:
            environment: dev, staging or prod
            artifact_ref: Image tag to deploy
            cancel_event: Set to stop dispatching and waiting

        Returns:
            RolloutReport in a terminal phase

        Raises:
            InvalidEnvironment: Before any remote call
            NoInstancesFound: If the fleet is empty
        """
        # Reject bad input before notifications or any other side effect.
        Environment.parse(environment)

        cancel_event = cancel_event or threading.Event()
        report = RolloutReport(
            environment=environment,
            artifact_ref=artifact_ref,
            start_time=time.time(),
        )

        logger.info("=" * 70)
        logger.info(f"Luma Fleet Rollout: {environment} -> {artifact_ref}")
        logger.info("=" * 70)
        logger.info(f"Region: {self.config.region}")
        logger.info(f"Max parallel: {self.strategy.max_parallel}")
        logger.info(f"Command timeout: {self.config.command_timeout}s")
        logger.info(
            f"Health probe: {self.config.health_attempts} attempt(s), "
            f"{self.config.health_delay}s delay"
        )
        logger.info(f"Service URL: {self.config.service_url or 'not configured'}")
        logger.info(f"Start time: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        logger.info("=" * 70)

        self._set_phase(report, RolloutPhase.RESOLVING)
        try:
            instances = self.resolver.resolve(environment)
        except DeployError as e:
            logger.error(f"Rollout aborted: {e}")
            self._notify(f"Deployment of {artifact_ref} to {environment} aborted: {e}", "error")
            raise

        report.instance_ids = [i.instance_id for i in instances]
        if self.release_marker:
            self.release_marker.record_attempt(environment, artifact_ref)
        self._notify(
            f"Deploying {artifact_ref} to {environment} "
            f"({len(instances)} instance(s))",
            "info",
        )

        report.results = self.strategy.run(
            lambda inst: self._deploy_instance(report, inst, artifact_ref, cancel_event),
            instances,
        )

        self._set_phase(report, RolloutPhase.FINALIZING)
        if cancel_event.is_set():
            logger.warning("Rollout cancelled; skipping environment health check")
        elif self.config.service_url:
            logger.info(f"Running environment health check: {self.config.service_url}")
            report.aggregate_health = self.prober.probe(self.config.service_url)
        else:
            logger.warning("No service URL configured; skipping environment health check")

        report.end_time = time.time()
        self._set_phase(report, report.verdict())

        if report.phase == RolloutPhase.SUCCEEDED and self.release_marker:
            self.release_marker.record(environment, artifact_ref)

        self._print_report(report)
        if self.config.report_dir:
            self._export_results_json(report)

        level = {
            RolloutPhase.SUCCEEDED: "success",
            RolloutPhase.PARTIALLY_FAILED: "warning",
        }.get(report.phase, "error")
        self._notify(
            f"Deployment of {artifact_ref} to {environment} {report.phase.value}: "
            f"{len(report.succeeded)}/{len(report.results)} instance(s) healthy",
            level,
        )
        return report

    def check_health(self, environment: str) -> FleetHealth:
        """Probe every instance and the aggregate endpoint without updating."""
        instances = self.resolver.resolve(environment)
        health = FleetHealth(environment=environment)
        for inst in instances:
            health.instances.append(
                (inst.instance_id, self.prober.probe(self.prober.endpoint_for(inst)))
            )
        if self.config.service_url:
            health.aggregate = self.prober.probe(self.config.service_url)

        logger.info("")
        logger.info("=" * 70)
        logger.info(f"HEALTH CHECK: {environment}")
        logger.info("=" * 70)
        logger.info(f"{'Instance':<25} {'Status':<12} {'Detail'}")
        logger.info("-" * 70)
        for instance_id, result in health.instances:
            logger.info(f"{instance_id:<25} {result.status.value:<12} {result.detail}")
        if health.aggregate:
            logger.info("-" * 70)
            logger.info(
                f"{'environment':<25} {health.aggregate.status.value:<12} "
                f"{health.aggregate.detail}"
            )
        logger.info("=" * 70)
        return health

    def _deploy_instance(
        self,
        report: RolloutReport,
        instance: InstanceRef,
        artifact_ref: str,
        cancel_event: threading.Event,
    ) -> InstanceResult:
        """Update then probe one instance. Never raises."""
        result = InstanceResult(
            instance_id=instance.instance_id,
            status="failed",
            artifact_ref=artifact_ref,
            start_time=time.time(),
        )

        if cancel_event.is_set():
            result.error_type = "UpdateCancelled"
            result.failed_step = "dispatch"
            result.error_message = "Rollout cancelled before dispatch"
            return self._finish(result)

        self._set_phase(report, RolloutPhase.UPDATING, instance.instance_id)
        try:
            command = self.updater.update(instance, artifact_ref, cancel_event)
        except UpdateFailed as e:
            logger.error(f"Deployment FAILED for {instance.instance_id}: {e}")
            instance.state = InstanceState.UNHEALTHY
            result.error_type = type(e).__name__
            result.failed_step = e.step
            result.error_message = e.cause
            result.command_id = getattr(e, "command_id", None)
            return self._finish(result)
        except Exception as e:
            logger.error(f"Deployment FAILED for {instance.instance_id}: {e}")
            instance.state = InstanceState.UNHEALTHY
            result.error_type = "UpdateFailed"
            result.failed_step = "unknown"
            result.error_message = str(e)
            return self._finish(result)

        result.command_id = command.command_id
        result.output = command.stdout

        self._set_phase(report, RolloutPhase.PROBING, instance.instance_id)
        health = self.prober.probe(self.prober.endpoint_for(instance))
        result.health = health

        if health.healthy:
            instance.state = InstanceState.HEALTHY
            result.status = "success"
        else:
            instance.state = InstanceState.UNHEALTHY
            result.error_type = (
                "HealthCheckTimeout"
                if health.status == HealthStatus.TIMEOUT
                else "HealthCheckFailed"
            )
            result.failed_step = "health"
            result.error_message = health.detail
            logger.error(
                f"Health check FAILED for {instance.instance_id}: {health.detail}"
            )

        return self._finish(result)

    @staticmethod
    def _finish(result: InstanceResult) -> InstanceResult:
        result.end_time = time.time()
        result.duration_seconds = result.end_time - result.start_time
        return result

    @staticmethod
    def _set_phase(
        report: RolloutReport, phase: RolloutPhase, instance_id: str = ""
    ) -> None:
        report.phase = phase
        report.events.append((phase.value, instance_id))
        if instance_id:
            logger.debug(f"Phase: {phase.value} ({instance_id})")
        else:
            logger.debug(f"Phase: {phase.value}")

    def _notify(self, message: str, level: str) -> None:
        try:
            self.notifier.notify(message, level)
        except Exception as e:
            logger.warning(f"Notification failed: {e}")

    def _format_duration(self, seconds: float) -> str:
        """Format duration in human-readable format."""
        if seconds < 60:
            return f"{seconds:.1f}s"
        mins = int(seconds // 60)
        secs = seconds % 60
        if seconds < 3600:
            return f"{mins}m {secs:.0f}s"
        return f"{mins // 60}h {mins % 60}m {secs:.0f}s"

    def _print_report(self, report: RolloutReport) -> None:
        """Print timing and per-instance status report."""
        logger.info("")
        logger.info("=" * 70)
        logger.info(f"ROLLOUT REPORT: {report.phase.value.upper()}")
        logger.info("=" * 70)
        logger.info(f"Environment:     {report.environment}")
        logger.info(f"Artifact:        {report.artifact_ref}")
        logger.info(
            f"Total duration:  {self._format_duration(report.end_time - report.start_time)}"
        )
        logger.info(
            f"Instances:       {len(report.succeeded)} succeeded, "
            f"{len(report.failed)} failed, {len(report.results)} total"
        )

        if report.succeeded:
            logger.info("")
            logger.info("SUCCESSFUL INSTANCES")
            logger.info("-" * 40)
            logger.info(f"{'Instance':<25} {'Duration':<12} {'Command'}")
            logger.info("-" * 70)
            for r in report.succeeded:
                duration_str = (
                    self._format_duration(r.duration_seconds)
                    if r.duration_seconds is not None
                    else "N/A"
                )
                logger.info(f"{r.instance_id:<25} {duration_str:<12} {r.command_id or 'N/A'}")

        if report.failed:
            logger.info("")
            logger.info("FAILED INSTANCES")
            logger.info("-" * 40)
            logger.info(f"{'Instance':<25} {'Step':<14} {'Error'}")
            logger.info("-" * 70)
            for r in report.failed:
                error = (
                    (r.error_message[:40] + "...")
                    if r.error_message and len(r.error_message) > 40
                    else (r.error_message or "Unknown")
                )
                logger.info(f"{r.instance_id:<25} {r.failed_step or '-':<14} {error}")

        logger.info("")
        if report.aggregate_health:
            logger.info(
                f"Environment health: {report.aggregate_health.status.value} "
                f"({report.aggregate_health.detail})"
            )
        else:
            logger.info("Environment health: skipped")
        logger.info("=" * 70)

    def _export_results_json(self, report: RolloutReport) -> Optional[str]:
        """Export the report to a JSON file in report_dir."""
        filename = os.path.join(
            self.config.report_dir,
            f"rollout-report-{report.environment}-"
            f"{datetime.now().strftime('%Y%m%d-%H%M%S')}.json",
        )
        try:
            os.makedirs(self.config.report_dir, exist_ok=True)
            with open(filename, "w") as f:
                json.dump(report.to_dict(), f, indent=2)
        except OSError as e:
            logger.error(f"Could not write report to {filename}: {e}")
            return None
        logger.info(f"Detailed report exported to: {filename}")
        return filename
