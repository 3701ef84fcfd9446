"""Dynamic Hostports (DHP).

Small controller that exposes individually-numbered pod ports through
dynamically-assigned node ports:
 - watches pods carrying the ``dynamic-hostports`` label
 - creates a NodePort service plus an explicit endpoints object per port
 - writes the assigned node port back onto the pod as an annotation
 - removes derived services once their pod is gone, including at startup

The implementation is intentionally small so it can be audited and explained.
"""
