"""Output parsers for benchmark and inspection tools."""
from .output_parsers import (
    parse_fio_engines,
    parse_fio_output,
    parse_iperf3_output,
    parse_sysbench_cpu_output,
    parse_sysbench_memory_latency,
    parse_sysbench_memory_output,
)
from .system_parsers import (
    MountEntry,
    parse_cpuinfo,
    parse_dmidecode_memory,
    parse_dmidecode_processor,
    parse_dmsetup_deps,
    parse_lscpu,
    parse_lshw_processor,
    parse_meminfo_total_mb,
    parse_model_frequency_mhz,
    parse_os_release,
    parse_proc_mounts,
    parse_pvecm_status,
    parse_pvesm_status,
    parse_pvesubscription,
    parse_pveversion,
    parse_storage_cfg,
    parse_zpool_devices,
)

__all__ = [
    "MountEntry",
    "parse_cpuinfo",
    "parse_dmidecode_memory",
    "parse_dmidecode_processor",
    "parse_dmsetup_deps",
    "parse_fio_engines",
    "parse_fio_output",
    "parse_iperf3_output",
    "parse_lscpu",
    "parse_lshw_processor",
    "parse_meminfo_total_mb",
    "parse_model_frequency_mhz",
    "parse_os_release",
    "parse_proc_mounts",
    "parse_pvecm_status",
    "parse_pvesm_status",
    "parse_pvesubscription",
    "parse_pveversion",
    "parse_storage_cfg",
    "parse_sysbench_cpu_output",
    "parse_sysbench_memory_latency",
    "parse_sysbench_memory_output",
    "parse_zpool_devices",
]
