"""Dependency cache management across builds."""

from pathlib import Path

from node_buildpack.logging import get_logger
from node_buildpack.types import CacheRestore, InstallPlan
from node_buildpack.utils.fs import copy_tree, remove_path

logger = get_logger(__name__)

NODE_MODULES = "node_modules"
YARN_CACHE = "yarn"


class CacheManager:
    """Owns the cache directory for one run.

    The npm workflow keeps a full node_modules snapshot; the yarn workflow
    lets yarn manage its own cache folder. Only one of the two ever exists.
    """

    def __init__(self, build_dir: Path, cache_dir: Path):
        self.build_dir = build_dir
        self.cache_dir = cache_dir

    @property
    def build_tree(self) -> Path:
        return self.build_dir / NODE_MODULES

    @property
    def tree_cache(self) -> Path:
        return self.cache_dir / NODE_MODULES

    @property
    def yarn_cache(self) -> Path:
        return self.cache_dir / YARN_CACHE

    def restore(self, plan: InstallPlan) -> CacheRestore:
        if plan == InstallPlan.PRIMARY:
            return self._restore_tool_cache()
        return self._restore_tree()

    def persist(self, plan: InstallPlan) -> None:
        if plan == InstallPlan.PRIMARY:
            logger.debug({"event": "cache_persist_skipped", "plan": plan.value})
            return
        self._persist_tree()

    def _restore_tool_cache(self) -> CacheRestore:
        if remove_path(self.tree_cache):
            logger.info({"event": "stale_tree_cache_removed", "path": str(self.tree_cache)})
        self.yarn_cache.mkdir(parents=True, exist_ok=True)
        return CacheRestore.TOOL_MANAGED

    def _restore_tree(self) -> CacheRestore:
        if remove_path(self.yarn_cache):
            logger.info({"event": "stale_yarn_cache_removed", "path": str(self.yarn_cache)})

        if self.build_tree.is_dir():
            logger.info({"event": "tree_checked_in", "path": str(self.build_tree)})
            return CacheRestore.REBUILD

        if self.tree_cache.is_dir():
            copy_tree(self.tree_cache, self.build_tree)
            logger.info({"event": "tree_restored", "source": str(self.tree_cache)})
            return CacheRestore.RESTORED

        return CacheRestore.EMPTY

    def _persist_tree(self) -> None:
        remove_path(self.tree_cache)
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        if self.build_tree.is_dir():
            copy_tree(self.build_tree, self.tree_cache)
            logger.info({"event": "tree_cached", "path": str(self.tree_cache)})
