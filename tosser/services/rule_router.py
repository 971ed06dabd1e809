import logging
import os
from datetime import datetime
from enum import Enum
from typing import Callable, List, Optional, Tuple

import aiofiles.os

from tosser.config import RuleConfig
from tosser.config_loader import ConfigStore
from tosser.core.error_history import ErrorHistory
from tosser.core.exceptions import TransferError
from tosser.logging_config import get_transfer_logger
from tosser.models import ExistsPolicy, ProcessingItem, TransferMode, TransferRecord
from tosser.services.processing_cache import ProcessingCache
from tosser.services.tracking.transfer_statistics import StatisticsSaver
from tosser.services.transfer.file_transfer import DEFAULT_CHUNK_SIZE, copy_file, move_file
from tosser.utils.file_operations import build_destination_path


class RuleOutcome(str, Enum):
    """Result of applying one rule to one file."""

    NOT_MATCHED = "not_matched"
    EXCLUDED = "excluded"
    PATH_ERROR = "path_error"
    DIR_ERROR = "dir_error"
    EXISTS_SKIPPED = "exists_skipped"
    EXISTS_UNKNOWN_POLICY = "exists_unknown_policy"
    REPLACE_FAILED = "replace_failed"
    TRANSFER_FAILED = "transfer_failed"
    MOVED = "moved"
    COPIED = "copied"

    @property
    def succeeded(self) -> bool:
        return self in (RuleOutcome.MOVED, RuleOutcome.COPIED)


class RuleRouter:
    """Applies a scan group's rules, in declared order, to one ProcessingItem."""

    def __init__(
        self,
        config_store: ConfigStore,
        processing_cache: ProcessingCache,
        statistics: StatisticsSaver,
        error_history: ErrorHistory,
    ):
        self.config_store = config_store
        self.processing_cache = processing_cache
        self.statistics = statistics
        self.error_history = error_history
        self._transfer_log = get_transfer_logger()

    async def process_item(self, item: ProcessingItem) -> List[RuleOutcome]:
        """
        Route one file through its group's rules.

        A successful move ends evaluation since the source is gone; a copy
        lets later rules fan the file out further. The source path is
        always released from the processing cache afterwards.
        """
        outcomes: List[RuleOutcome] = []
        dst_dirs: List[str] = []
        try:
            # Group and global exclusions come from the same configuration
            settings = item.settings if item.settings is not None else self.config_store.current
            logging.debug(f"Checking file {item.src_path}")

            for rule in item.scan_group.rules:
                outcome, dst_path = await self._apply_rule(
                    item, rule, settings.is_excluded, settings.copy_chunk_size
                )
                outcomes.append(outcome)

                if outcome.succeeded:
                    dst_dir = os.path.dirname(dst_path)
                    if dst_dir not in dst_dirs:
                        dst_dirs.append(dst_dir)
                if outcome == RuleOutcome.MOVED:
                    break

            if dst_dirs:
                await self.statistics.report(TransferRecord(item=item, dst_dirs=tuple(dst_dirs)))
        finally:
            self.processing_cache.delete(item.src_path)

        return outcomes

    def _is_excluded(
        self, item: ProcessingItem, rule: RuleConfig, global_excluded: Callable[[str], bool]
    ) -> bool:
        name = item.src_file
        return global_excluded(name) or item.scan_group.is_excluded(name) or rule.is_excluded(name)

    async def _apply_rule(
        self,
        item: ProcessingItem,
        rule: RuleConfig,
        global_excluded: Callable[[str], bool],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> Tuple[RuleOutcome, Optional[str]]:
        if not rule.matches(item.src_file):
            return RuleOutcome.NOT_MATCHED, None

        if self._is_excluded(item, rule, global_excluded):
            logging.debug(f"Skipping excluded file {item.src_path} (rule {rule.describe()})")
            return RuleOutcome.EXCLUDED, None

        logging.info(f"{item.src_path} matched rule {rule.describe()}")

        try:
            dst_path = str(build_destination_path(rule.dst_dir, item.src_file, datetime.now()))
        except (ValueError, OSError) as e:
            self.error_history.error(f"Cannot resolve destination path {rule.dst_dir}: {e}")
            return RuleOutcome.PATH_ERROR, None

        dst_dir = os.path.dirname(dst_path)
        try:
            await aiofiles.os.makedirs(dst_dir, exist_ok=True)
        except OSError as e:
            self.error_history.error(
                f"Cannot create destination directory {dst_dir} for {item.src_path}: {e}"
            )
            return RuleOutcome.DIR_ERROR, None

        if await aiofiles.os.path.exists(dst_path):
            outcome = await self._resolve_existing(dst_path, rule)
            if outcome is not None:
                return outcome, None

        return await self._transfer(item, rule, dst_path, chunk_size), dst_path

    async def _resolve_existing(self, dst_path: str, rule: RuleConfig) -> Optional[RuleOutcome]:
        """Apply the rule's if_exists policy. None means: go ahead with the transfer."""
        policy = rule.exists_policy

        if policy == ExistsPolicy.REPLACE:
            logging.info(f"File exists: {dst_path} if_exists={rule.if_exists}. Removing it")
            try:
                await aiofiles.os.remove(dst_path)
            except OSError as e:
                self.error_history.error(
                    f"File exists: {dst_path} if_exists={rule.if_exists}. Could not remove it: {e}"
                )
                return RuleOutcome.REPLACE_FAILED
            return None

        if policy == ExistsPolicy.SKIP:
            logging.info(f"File exists: {dst_path} if_exists={rule.if_exists}. Skipping")
            return RuleOutcome.EXISTS_SKIPPED

        self.error_history.error(
            f"File exists: {dst_path}. Unknown if_exists={rule.if_exists!r}, skipping"
        )
        return RuleOutcome.EXISTS_UNKNOWN_POLICY

    async def _transfer(
        self, item: ProcessingItem, rule: RuleConfig, dst_path: str, chunk_size: int
    ) -> RuleOutcome:
        src_path = item.src_path

        if rule.mode == TransferMode.MOVE:
            logging.debug(f"Moving file {src_path} -> {dst_path}")
            try:
                await move_file(src_path, dst_path, chunk_size)
            except (OSError, TransferError) as e:
                self.error_history.error(f"Error moving file {src_path}: {e}")
                return RuleOutcome.TRANSFER_FAILED
            logging.info(f"File moved {src_path} -> {dst_path}")
            self._transfer_log.info(f"moved {src_path} -> {dst_path} ({item.size} bytes)")
            return RuleOutcome.MOVED

        logging.debug(f"Copying file {src_path} -> {dst_path}")
        try:
            await copy_file(src_path, dst_path, chunk_size)
        except (OSError, TransferError) as e:
            self.error_history.error(f"Error copying file {src_path}: {e}")
            return RuleOutcome.TRANSFER_FAILED
        logging.info(f"File copied {src_path} -> {dst_path}")
        self._transfer_log.info(f"copied {src_path} -> {dst_path} ({item.size} bytes)")
        return RuleOutcome.COPIED
