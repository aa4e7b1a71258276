"""
DeploymentPipeline - run the convergence steps against one host, in order.

    {unknown} -> asset synced -> link repaired -> [unit exists? stop]
              -> unit file current -> binary replaced -> reloaded -> started+enabled

The first failing step aborts the run. Nothing is retried or rolled back:
every step is idempotent, so re-running the pipeline is the recovery path.
"""

from typing import TYPE_CHECKING, List, Optional, Sequence

from crawldeploy.core import Logger, SystemTimeProvider, TimeProvider
from .base import DeploymentResult, HostChannel, StepOutcome, Supervisor
from .exceptions import DeploymentError
from .steps import (
    AssetSync,
    BinaryDeployer,
    ConvergenceStep,
    DataLinkRepair,
    ServiceActivator,
    ServiceQuiescer,
    UnitInstaller,
)

if TYPE_CHECKING:
    from crawldeploy.utils.config import DeployConfig


class DeploymentPipeline:
    """
    Strictly sequential, single-threaded deployment of one host.

    Host, supervisor and configuration are constructor arguments; the pipeline
    holds no process-wide state, so an outer loop may build one per host.
    """

    def __init__(
        self,
        steps: Sequence[ConvergenceStep],
        host: str,
        logger: Logger,
        time_provider: Optional[TimeProvider] = None
    ):
        self.steps = list(steps)
        self.host = host
        self.log = logger
        self.time = time_provider or SystemTimeProvider()

    @classmethod
    def from_config(
        cls,
        config: 'DeployConfig',
        channel: HostChannel,
        supervisor: Supervisor,
        logger: Logger,
        time_provider: Optional[TimeProvider] = None
    ) -> 'DeploymentPipeline':
        """Build the standard six-step pipeline for the crawler."""
        unit = config.unit
        steps = [
            AssetSync(channel, config.asset_artifact()),
            DataLinkRepair(channel, config.managed_link()),
            ServiceQuiescer(supervisor, unit),
            UnitInstaller(channel, config.unit_artifact()),
            BinaryDeployer(channel, config.binary_artifact()),
            ServiceActivator(supervisor, unit),
        ]
        return cls(steps, channel.describe(), logger, time_provider)

    def plan(self) -> List[str]:
        """Ordered step descriptions; touches nothing on the host."""
        return [step.describe() for step in self.steps]

    def run(self) -> DeploymentResult:
        """
        Execute every step in order.

        Returns:
            DeploymentResult listing the completed steps

        Raises:
            DeploymentError: The first step failure, with .step and
                .completed_steps filled in. Remaining steps are not run.
        """
        total = len(self.steps)
        outcomes: List[StepOutcome] = []
        self.log.info(f"Deploying to {self.host}")

        for index, step in enumerate(self.steps, start=1):
            description = step.describe()
            self.log.info(f"[{index}/{total}] {description}")
            started = self.time.current_time()
            try:
                step.apply()
            except DeploymentError as e:
                e.step = step.name
                e.completed_steps = [o.name for o in outcomes]
                self.log.error(
                    f"Step '{step.name}' failed on {self.host}: {e}\n"
                    f"Completed before failure: {', '.join(e.completed_steps) or 'none'}\n"
                    f"Fix the cause and re-run the deployment; completed steps are safe to repeat."
                )
                raise
            elapsed = self.time.current_time() - started
            outcomes.append(StepOutcome(step.name, description, elapsed))
            self.log.debug(f"  {step.name} done in {elapsed:.2f}s")

        metadata = {}
        for step in self.steps:
            if isinstance(step, ServiceQuiescer):
                metadata["unit"] = step.unit.name
                metadata["previous_install_stopped"] = step.stopped
            elif isinstance(step, BinaryDeployer):
                metadata["binary"] = step.artifact.destination

        self.log.info(f"  ✓ Deployment to {self.host} complete ({total} steps)")
        return DeploymentResult(success=True, host=self.host, steps=outcomes, metadata=metadata)
