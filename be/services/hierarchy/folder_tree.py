import logging
from collections import deque

from sqlalchemy import delete, select, update

from common.db import chunked, db
from common.errors import InvalidArgument, NotFound, PreconditionFailed
from models.asset import Asset
from models.base import utcnow
from models.enums import LifecycleState, StateFilter
from models.folder import Folder

logger = logging.getLogger(__name__)


def _state_clause(column, state_filter):
    if state_filter == StateFilter.ACTIVE:
        return column.is_(None)
    if state_filter == StateFilter.TRASHED:
        return column.isnot(None)
    return None


class FolderTree:
    """Tree operations over one owner's folders.

    Every walk is an explicit breadth-first loop over id sets, never Python
    recursion, so deep or cyclic-by-corruption hierarchies cannot blow the
    stack. Every query is scoped to ``user_id``.
    """

    def __init__(self, user_id: str, batch_size: int = 500):
        self.user_id = user_id
        self.batch_size = batch_size

    # -------- lookups --------
    def get(self, folder_id: str, state: LifecycleState = None) -> Folder:
        """Return the owner's folder or raise NotFound (optionally requiring a state)."""
        folder = db.session.scalars(
            select(Folder).where(Folder.id == folder_id, Folder.user_id == self.user_id)
        ).first()
        if folder is None or (state is not None and folder.state != state):
            raise NotFound("Folder not found")
        return folder

    def _parent_of(self, folder_id: str):
        return db.session.scalar(
            select(Folder.parent_id).where(Folder.id == folder_id, Folder.user_id == self.user_id)
        )

    def is_descendant(self, ancestor_id: str, candidate_id: str) -> bool:
        """True if ``ancestor_id`` appears on ``candidate_id``'s parent chain."""
        seen = {candidate_id}
        current = self._parent_of(candidate_id)
        while current is not None:
            if current == ancestor_id:
                return True
            if current in seen:
                # pre-existing cycle; stop rather than loop forever
                logger.warning("cycle detected in folder tree of user %s at %s", self.user_id, current)
                return False
            seen.add(current)
            current = self._parent_of(current)
        return False

    def collect_subtree_ids(self, root_id: str, state_filter=StateFilter.ANY) -> list:
        """root_id plus every descendant matching ``state_filter``, parents before children.

        Descent stops at folders the filter excludes.
        """
        ordered = [root_id]
        seen = {root_id}
        frontier = deque([root_id])
        while frontier:
            batch = [frontier.popleft() for _ in range(min(len(frontier), self.batch_size))]
            query = select(Folder.id).where(Folder.user_id == self.user_id, Folder.parent_id.in_(batch))
            clause = _state_clause(Folder.deleted_at, state_filter)
            if clause is not None:
                query = query.where(clause)
            for child_id in db.session.scalars(query):
                if child_id in seen:
                    continue
                seen.add(child_id)
                ordered.append(child_id)
                frontier.append(child_id)
        return ordered

    def children_count(self, folder_id: str) -> int:
        has_assets = db.session.scalar(
            select(Asset.id).where(Asset.user_id == self.user_id, Asset.folder_id == folder_id).limit(1)
        )
        has_folders = db.session.scalar(
            select(Folder.id).where(Folder.user_id == self.user_id, Folder.parent_id == folder_id).limit(1)
        )
        return int(has_assets is not None) + int(has_folders is not None)

    # -------- depth ordering --------
    @staticmethod
    def depth_order(folders):
        """Sort (id, parent_id) pairs deepest first.

        Depth counts only ancestors inside the given set, which is what the
        delete order needs: a folder must go before any parent in the same batch.
        """
        parents = {folder_id: parent_id for folder_id, parent_id in folders}
        depths = {}
        for folder_id in parents:
            chain = []
            current = folder_id
            while current in parents and current not in depths and current not in chain:
                chain.append(current)
                current = parents[current]
            base = depths.get(current, -1) if current in parents else -1
            for offset, node in enumerate(reversed(chain), start=1):
                depths[node] = base + offset
        return sorted(parents, key=lambda folder_id: depths[folder_id], reverse=True)

    def delete_folders_deepest_first(self, folder_ids) -> int:
        folder_ids = list(folder_ids)
        pairs = []
        for batch in chunked(folder_ids, self.batch_size):
            pairs.extend(db.session.execute(
                select(Folder.id, Folder.parent_id).where(Folder.user_id == self.user_id, Folder.id.in_(batch))
            ).all())
        deleted = 0
        for folder_id in self.depth_order(pairs):
            deleted += db.session.execute(
                delete(Folder).where(Folder.id == folder_id, Folder.user_id == self.user_id)
            ).rowcount
        return deleted

    # -------- cascades --------
    def _set_deleted_at(self, folder_ids, value, only_state):
        assets = 0
        for batch in chunked(folder_ids, self.batch_size):
            asset_stmt = update(Asset).where(Asset.user_id == self.user_id, Asset.folder_id.in_(batch))
            clause = _state_clause(Asset.deleted_at, only_state)
            if clause is not None:
                asset_stmt = asset_stmt.where(clause)
            assets += db.session.execute(
                asset_stmt.values(deleted_at=value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            ).rowcount
            db.session.execute(
                update(Folder)
                .where(Folder.user_id == self.user_id, Folder.id.in_(batch))
                .values(deleted_at=value, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
        return assets

    def cascade_trash(self, root_id: str):
        """Soft-delete an active folder, its active descendants and every active asset in them."""
        self.get(root_id, LifecycleState.ACTIVE)
        folder_ids = self.collect_subtree_ids(root_id, StateFilter.ACTIVE)
        assets = self._set_deleted_at(folder_ids, utcnow(), StateFilter.ACTIVE)
        return {'trashed_folders': len(folder_ids), 'trashed_files': assets}

    def cascade_restore(self, root_id: str, to_root: bool = False):
        """Restore a trashed folder and its trashed subtree.

        The folder's parent must be active; otherwise PreconditionFailed,
        unless ``to_root`` re-targets the folder to the root. A folder whose
        parent is active stays where it is.
        """
        folder = self.get(root_id, LifecycleState.TRASHED)
        if folder.parent_id is not None:
            parent = db.session.scalars(
                select(Folder).where(Folder.id == folder.parent_id, Folder.user_id == self.user_id)
            ).first()
            if parent is None or parent.deleted_at is not None:
                if not to_root:
                    if parent is None:
                        raise PreconditionFailed("Parent folder no longer exists")
                    raise PreconditionFailed(
                        "Parent folder is in trash. Restore it first or restore this folder to root."
                    )
                folder.parent_id = None
                db.session.flush()
        folder_ids = self.collect_subtree_ids(root_id, StateFilter.TRASHED)
        assets = self._set_deleted_at(folder_ids, None, StateFilter.TRASHED)
        return {'restored_folders': len(folder_ids), 'restored_files': assets}

    def cascade_purge(self, root_id: str, release):
        """Hard-delete a folder subtree in any state.

        ``release(content_hash)`` is called once per deleted asset to drop its
        content reference. Folders are deleted deepest first. Returns counts
        and the freed bytes for the quota ledger.
        """
        self.get(root_id)
        folder_ids = self.collect_subtree_ids(root_id, StateFilter.ANY)
        deleted_files, freed_bytes = self.purge_assets_in(folder_ids, release)
        deleted_folders = self.delete_folders_deepest_first(folder_ids)
        return {'deleted_files': deleted_files, 'deleted_folders': deleted_folders, 'freed_bytes': freed_bytes}

    def purge_assets_in(self, folder_ids, release):
        deleted_files = 0
        freed_bytes = 0
        for batch in chunked(folder_ids, self.batch_size):
            rows = db.session.execute(
                select(Asset.id, Asset.content_hash, Asset.size)
                .where(Asset.user_id == self.user_id, Asset.folder_id.in_(batch))
            ).all()
            for asset_id, content_hash, size in rows:
                db.session.execute(delete(Asset).where(Asset.id == asset_id))
                release(content_hash)
                deleted_files += 1
                freed_bytes += size
        return deleted_files, freed_bytes

    # -------- re-parenting --------
    def move(self, folder_id: str, new_parent_id) -> Folder:
        """Re-parent an active folder; rejects self-parenting and moves into its own subtree."""
        folder = self.get(folder_id, LifecycleState.ACTIVE)
        if new_parent_id == folder_id:
            raise InvalidArgument("Cannot move folder to itself")
        if new_parent_id is not None:
            try:
                self.get(new_parent_id, LifecycleState.ACTIVE)
            except NotFound:
                raise NotFound("Target folder not found")
            if self.is_descendant(folder_id, new_parent_id):
                raise InvalidArgument("Cannot move folder into its own subfolder")
        folder.parent_id = new_parent_id
        db.session.flush()
        return folder
