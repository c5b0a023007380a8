"""
⚙️ Pipeline Executor
Applies an integration's transformer chain to one input record

Flow per mapping: PENDING -> RESOLVING -> APPLYING -> COMPLETED | FAILED.
Every transformer name is resolved before any transformer runs, and the
output record is only handed back once the whole chain has been applied,
so a failing mapping never yields a partially filled record.
"""

from typing import Dict, List, Mapping, Optional

from fieldmap.core.exceptions import (
    ConfigurationError,
    DataError,
    FieldMapError,
    UnknownTransformerError,
    UnresolvedTransformerError,
)
from fieldmap.core.logging import LoggerMixin
from fieldmap.models import IntegrationMapping, PipelineRun, PipelineState
from fieldmap.services.configuration_provider import IntegrationConfigurationProviderBase
from fieldmap.transformers.base import Transformer
from fieldmap.transformers.registry import TransformerRegistry

Record = Mapping[str, Optional[str]]


class PipelineExecutor(LoggerMixin):
    """
    Stateless across invocations: the registry is read-only and every run
    works on its own copies, so one executor serves any number of
    concurrent callers.
    """

    def __init__(self, registry: TransformerRegistry,
                 provider: Optional[IntegrationConfigurationProviderBase] = None):
        self.registry = registry
        self.provider = provider

    def _resolve(self, mapping: IntegrationMapping) -> List[Transformer]:
        resolved = []
        for index, step in enumerate(mapping.steps):
            try:
                resolved.append(self.registry.resolve(step.transformer_name))
            except UnknownTransformerError as e:
                raise UnresolvedTransformerError(
                    mapping.integration_key,
                    index,
                    step.transformer_name,
                    source_field=step.source_field,
                    target_field=step.target_field,
                ) from e
        return resolved

    @staticmethod
    def _check_record(integration_key: str, record: Record) -> Dict[str, Optional[str]]:
        if not isinstance(record, Mapping):
            raise DataError(
                f"Record for '{integration_key}' must be a mapping of field -> string",
                integration_key=integration_key,
                record_type=type(record).__name__,
            )
        for field_name, value in record.items():
            if value is not None and not isinstance(value, str):
                raise DataError(
                    f"Field '{field_name}' of record for '{integration_key}' is not a string",
                    integration_key=integration_key,
                    field=field_name,
                    value_type=type(value).__name__,
                )
        return dict(record)

    def run(self, mapping: IntegrationMapping, record: Record) -> PipelineRun:
        """
        Apply ``mapping`` to ``record`` and report the outcome instead of
        raising. The returned run holds the output only when COMPLETED.
        """
        run = PipelineRun(integration_key=mapping.integration_key)
        try:
            run.transition(PipelineState.RESOLVING)
            transformers = self._resolve(mapping)

            run.transition(PipelineState.APPLYING)
            working = self._check_record(mapping.integration_key, record)
            output: Dict[str, str] = {}
            # Later steps see earlier targets through ``working``
            for step, transformer in zip(mapping.steps, transformers):
                value = transformer.transform(working.get(step.source_field), step.args)
                working[step.target_field] = value
                output[step.target_field] = value
        except FieldMapError as e:
            run.fail(e)
            self.logger.warning(
                f"❌ Mapping '{mapping.integration_key}' failed",
                integration_key=mapping.integration_key,
                error_category=e.category,
                error=e.message,
            )
            return run

        run.complete(output)
        self.logger.debug(
            f"✅ Mapping '{mapping.integration_key}' applied",
            integration_key=mapping.integration_key,
            fields=len(output),
        )
        return run

    def execute(self, mapping: IntegrationMapping, record: Record) -> Dict[str, str]:
        """
        Apply ``mapping`` to ``record`` and return the output record.

        Raises:
            UnresolvedTransformerError: a step names an unregistered transformer
            DataError: the record is not a mapping of field -> string
        """
        run = self.run(mapping, record)
        if not run.is_success:
            raise run.error
        return run.output

    def _require_provider(self) -> IntegrationConfigurationProviderBase:
        if self.provider is None:
            raise ConfigurationError("PipelineExecutor has no configuration provider")
        return self.provider

    async def execute_integration(self, integration_key: str, record: Record) -> Dict[str, str]:
        """Run one integration by key; fails closed when its toggle is not enabled"""
        mapping = await self._require_provider().get_active_integration(integration_key)
        return self.execute(mapping, record)

    async def execute_active(self, record: Record) -> List[PipelineRun]:
        """
        Run every active integration against ``record``.

        One run per integration; a failing mapping does not affect the
        output of the others.
        """
        mappings = await self._require_provider().get_all_active_integrations()
        runs = [self.run(mapping, record) for mapping in mappings]

        failed = [r for r in runs if not r.is_success]
        self.logger.info(
            f"🏁 Executed {len(runs)} active integrations",
            succeeded=len(runs) - len(failed),
            failed=len(failed),
        )
        return runs
