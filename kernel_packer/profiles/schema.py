"""Pydantic models for device profile validation.

A device profile captures everything that differs between two kernels
packed by this tool: the product tag used in the zip name, the defconfig,
the clang toolchain release, the cross-compile variables passed to make,
and where the AnyKernel3 packaging repository lives.
"""

import re

from pydantic import BaseModel, ConfigDict, Field, field_validator

PRODUCT_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9_.\-]+$")


class CompilerSchema(BaseModel):
    """Compiler selection variables passed to every make invocation.

    Attributes:
        cc: Value of CC.
        clang_triple: Value of CLANG_TRIPLE.
        llvm: Pass LLVM=1.
        llvm_ias: Pass LLVM_IAS=1.
        cross_compile: Value of CROSS_COMPILE.
    """

    model_config = ConfigDict(extra="forbid")

    cc: str = Field(default="clang")
    clang_triple: str | None = Field(default="clang")
    llvm: bool = Field(default=True)
    llvm_ias: bool = Field(default=True)
    cross_compile: str = Field(default="aarch64-linux-gnu-")


class AnyKernelSchema(BaseModel):
    """Location of the AnyKernel3 packaging repository.

    Attributes:
        url: Git URL to clone from.
        branch: Branch to clone.
        directory: Checkout directory, relative to the source tree.
    """

    model_config = ConfigDict(extra="forbid")

    url: str = Field(default="https://github.com/kimocoder/AnyKernel3")
    branch: str = Field(default="spacewar")
    directory: str = Field(default="AnyKernel3")


class DeviceProfile(BaseModel):
    """Complete device profile.

    Attributes:
        product_name: Prefix of the zip file name.
        defconfig: Defconfig under arch/<arch>/configs.
        arch: Kernel ARCH value.
        clang_version: Directory name of the clang release under linux-x86.
        compiler: Compiler selection variables.
        dts_subdir: Directory under boot/dts holding the device's DTBs.
        anykernel: Packaging repository location.
        module_suffix: Appended to the kernel version for the modules directory.
        modules_runtime_dir: Module directory on the device, used in modules.dep.
        dtbo_page_size: Page size passed to mkdtboimg.py.
        zip_excludes: Glob patterns left out of the zip.
    """

    model_config = ConfigDict(extra="forbid")

    product_name: str = Field(default="nethunter-spacewar")
    defconfig: str = Field(default="spacewar_defconfig")
    arch: str = Field(default="arm64")
    clang_version: str = Field(default="clang-r536225")
    compiler: CompilerSchema = Field(default_factory=CompilerSchema)
    dts_subdir: str = Field(default="vendor/qcom")
    anykernel: AnyKernelSchema = Field(default_factory=AnyKernelSchema)
    module_suffix: str = Field(default="-NetHunter")
    modules_runtime_dir: str = Field(default="/vendor/lib/modules")
    dtbo_page_size: int = Field(default=4096, gt=0)
    zip_excludes: list[str] = Field(
        default_factory=lambda: ["*.git*", "*README.md*", "*placeholder*"]
    )

    @field_validator("product_name")
    @classmethod
    def validate_product_name(cls, v: str) -> str:
        """Validate product_name is safe for use in a file name."""
        if not PRODUCT_NAME_PATTERN.match(v):
            raise ValueError(
                "product_name must contain only letters, digits, '.', '_' and '-'"
            )
        return v

    @field_validator("modules_runtime_dir")
    @classmethod
    def validate_modules_runtime_dir(cls, v: str) -> str:
        """Validate modules_runtime_dir is absolute and drop a trailing /."""
        if not v.startswith("/"):
            raise ValueError("modules_runtime_dir must start with '/'")
        return v.rstrip("/") or "/"


__all__ = ["AnyKernelSchema", "CompilerSchema", "DeviceProfile"]
