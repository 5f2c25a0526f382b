"""Journal field names and the metadata files they populate.

The monitor writes each block event into the journal as one record whose
fields are the udev properties plus a set of sysfs attribute captures. The
tables below map each captured field to the file it becomes, relative to
the device's metadata directory (``<root>/sys/<DEVPATH>``).

Which table applies depends on the device type and on extended capture:

- GENERIC_FILES: every device.
- PARTITION_FILES: DEVTYPE=partition.
- DISK_FILES: DEVTYPE=disk (device/, queue/, dm/, md/ subtrees).
- EXTRA_FILES: extended capture only.
- DM_EXTRA_FILES: extended capture and a ``dm-N`` kernel name only.
"""

from __future__ import annotations

# Record selection and identity
FIELD_ACTION = "ACTION"
FIELD_SUBSYSTEM = "SUBSYSTEM"
FIELD_IDENTIFIER = "SYSLOG_IDENTIFIER"
FIELD_DEVNAME = "DEVNAME"
FIELD_DEVPATH = "DEVPATH"
FIELD_DEVLINKS = "DEVLINKS"
FIELD_MAJOR = "MAJOR"
FIELD_MINOR = "MINOR"
FIELD_DEVTYPE = "DEVTYPE"
FIELD_TIMESTAMP = "__REALTIME_TIMESTAMP"

# Dependency references, resolved after ingestion
FIELD_HOLDERS = "HOLDERS"
FIELD_SLAVES = "SLAVES"

BLOCK_SUBSYSTEM = "block"

GENERIC_FILES: dict[str, str] = {
    "SIZE": "size",
    "RO": "ro",
    "REMOVABLE": "removable",
    "HIDDEN": "hidden",
    "CAPABILITY": "capability",
    "ALIGNMENT_OFFSET": "alignment_offset",
    "DISCARD_ALIGNMENT": "discard_alignment",
}

PARTITION_FILES: dict[str, str] = {
    "PARTN": "partition",
    "START": "start",
}

DISK_FILES: dict[str, str] = {
    # device/
    "DEVICE_MODEL": "device/model",
    "DEVICE_STATE": "device/state",
    "DEVICE_VENDOR": "device/vendor",
    "DEVICE_SERIAL": "device/serial",
    "DEVICE_TYPE": "device/type",
    "DEVICE_REV": "device/rev",
    "DEVICE_WWID": "device/wwid",
    # queue/
    "QUEUE_DISCARD_GRANULARITY": "queue/discard_granularity",
    "QUEUE_DISCARD_MAX_BYTES": "queue/discard_max_bytes",
    "QUEUE_DISCARD_ZEROES_DATA": "queue/discard_zeroes_data",
    "QUEUE_SCHEDULER": "queue/scheduler",
    "QUEUE_NR_REQUESTS": "queue/nr_requests",
    "QUEUE_LOGICAL_BLOCK_SIZE": "queue/logical_block_size",
    "QUEUE_PHYSICAL_BLOCK_SIZE": "queue/physical_block_size",
    "QUEUE_MINIMUM_IO_SIZE": "queue/minimum_io_size",
    "QUEUE_OPTIMAL_IO_SIZE": "queue/optimal_io_size",
    "QUEUE_ROTATIONAL": "queue/rotational",
    "QUEUE_ZONED": "queue/zoned",
    "QUEUE_READ_AHEAD_KB": "queue/read_ahead_kb",
    "QUEUE_WRITE_SAME_MAX_BYTES": "queue/write_same_max_bytes",
    "QUEUE_DAX": "queue/dax",
    # dm/
    "DM_NAME": "dm/name",
    "DM_UUID": "dm/uuid",
    "DM_SUSPENDED": "dm/suspended",
    # md/
    "MD_LEVEL": "md/level",
}

EXTRA_FILES: dict[str, str] = {
    "ID_FS_LABEL": "EXTRA/label",
    "ID_FS_UUID": "EXTRA/uuid",
    "ID_FS_TYPE": "EXTRA/fstype",
    "ID_FS_VERSION": "EXTRA/fsver",
    "ID_PART_ENTRY_NAME": "EXTRA/partlabel",
    "ID_PART_ENTRY_UUID": "EXTRA/partuuid",
    "ID_PART_ENTRY_TYPE": "EXTRA/parttype",
    "ID_PART_TABLE_TYPE": "EXTRA/pttype",
    "ID_PART_TABLE_UUID": "EXTRA/ptuuid",
    "ID_WWN": "EXTRA/wwn",
    "MOUNTPOINTS": "EXTRA/mountpoints",
    # NVMe
    "NVME_TRANSPORT": "EXTRA/nvme/transport",
    "NVME_SUBSYSNQN": "EXTRA/nvme/subsysnqn",
    "NVME_FIRMWARE_REV": "EXTRA/nvme/firmware_rev",
    # Fibre Channel
    "FC_PORT_NAME": "EXTRA/fc/port_name",
    "FC_NODE_NAME": "EXTRA/fc/node_name",
    "FC_PORT_STATE": "EXTRA/fc/port_state",
    # SCSI host
    "SCSI_HOST_PROC_NAME": "EXTRA/scsi_host/proc_name",
    "SCSI_HOST_UNIQUE_ID": "EXTRA/scsi_host/unique_id",
}

DM_EXTRA_FILES: dict[str, str] = {
    "DM_TABLE": "dm/EXTRA/table",
    "DM_ACTIVATION": "dm/EXTRA/activation",
    "DM_OPEN": "dm/EXTRA/open_count",
    "DM_LV_LAYER": "dm/EXTRA/lv_layer",
    "DM_VG_NAME": "dm/EXTRA/vg_name",
    "DM_LV_NAME": "dm/EXTRA/lv_name",
}

# Every field captured opaquely into DeviceEvent.attributes
ATTRIBUTE_FIELDS: frozenset[str] = frozenset(
    {
        *GENERIC_FILES,
        *PARTITION_FILES,
        *DISK_FILES,
        *EXTRA_FILES,
        *DM_EXTRA_FILES,
    }
)
