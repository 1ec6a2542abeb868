import logging

from lightkube.models.meta_v1 import OwnerReference

from ..exceptions import ObjectError
from ..resources import api_version_and_kind


log = logging.getLogger(__name__)


def _same_owner(ref, owner):
    api_version, kind = api_version_and_kind(owner)
    return (
        ref.apiVersion == api_version
        and ref.kind == kind
        and ref.name == owner.metadata.name
    )


def set_owner_reference(owner, subject, block_owner_deletion=False, controller=False):
    """Add an owner reference pointing to `owner` to the `subject`.
    An existing reference to the same owner is replaced.
    """
    if subject.metadata.ownerReferences is None:
        subject.metadata.ownerReferences = []
    refs = [
        ref for ref in subject.metadata.ownerReferences
        if not _same_owner(ref, owner)
    ]
    if controller:
        for existing_ref in refs:
            if existing_ref.controller:
                raise ObjectError(
                    subject,
                    f'already controlled by {existing_ref.kind} {existing_ref.name}',
                )
    api_version, kind = api_version_and_kind(owner)
    ref = OwnerReference(
        apiVersion=api_version,
        kind=kind,
        name=owner.metadata.name,
        uid=owner.metadata.uid,
        blockOwnerDeletion=block_owner_deletion,
        controller=controller,
    )
    refs.append(ref)
    subject.metadata.ownerReferences = refs
    return ref


def set_controller_reference(owner, subject):
    return set_owner_reference(
        owner,
        subject,
        block_owner_deletion=True,
        controller=True,
    )


def controller_reference(obj):
    """Return the owner reference marked as controller, or None."""
    for ref in obj.metadata.ownerReferences or []:
        if ref.controller:
            return ref
    return None


def is_controlled_by(obj, owner) -> bool:
    ref = controller_reference(obj)
    if ref is None:
        return False
    if owner.metadata.uid is not None and ref.uid is not None:
        return ref.uid == owner.metadata.uid
    return _same_owner(ref, owner)
