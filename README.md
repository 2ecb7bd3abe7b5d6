# xvsim

`xvsim` models the core parts of a small Unix-like teaching kernel as plain
Python objects. You can create, inspect and test each layer on its own
without booting anything. The package uses only the standard library.

## What is inside

- `xvsim.buddy`: `BuddyAllocator`, a power-of-two block allocator with
  `kmalloc`, `kfree`, `alloc_page` and `free_page`. It keeps bitmap
  bookkeeping and merges buddies. The module also has `get_order`, which
  gives the order of the smallest block that holds a given size.
- `xvsim.pagealloc`: `PageAllocator`, a free list of 4096-byte pages with
  `freerange`, `kfree` and `kalloc`.
- `xvsim.strings`: `strncmp`, `strncpy`, `safestrcpy` and `memcmp`, with
  NUL-terminated string semantics.
- `xvsim.layout`: the on-disk format. It holds `Superblock`, `DiskInode` and
  `Dirent`, each with `pack` and `unpack`, along with `Stat`, `InodeType` and
  the `iblock` and `bblock` helpers.
- `xvsim.memdisk`: `MemDisk`, a block device backed by an in-memory image,
  and the `Buf` and `BufFlag` types it reads and writes.
- `xvsim.bcache`: `BufferCache`, a fixed pool of sector buffers in
  most-recently-used order, with `bread`, `bwrite` and `brelse`.
- `xvsim.log`: `Log`, a redo log that allows one transaction at a time. Use
  `begin_trans` and `commit_trans`, or the `transaction()` context manager.
- `xvsim.fs`: `FileSystem` and `Inode`. This covers the inode cache, block
  mapping, `readi` and `writei`, directories (`dirlookup`, `dirlink`) and path
  lookup (`namei`, `nameiparent`). The module also has the `skipelem` and
  `namecmp` functions.
- `xvsim.pipe`: `Pipe`, a bounded 512-byte FIFO with blocking `read` and
  `write`.
- `xvsim.file`: `FileTable`, `File` and `FileKind`, which are
  reference-counted open files over inodes and pipes.
- `xvsim.console`: `Console`, which handles line editing and echo for typed
  input. The module also has `format_message`, a small formatter for
  `%d %x %p %s %%`.
- `xvsim.proc`: `ProcTable`, `Proc` and `ProcState`. It covers allocation,
  `userinit`, `fork`, `exit`, `wait`, `sleep`/`wakeup`, `kill` and
  `yield_cpu`. It also has a scheduler pass (`runnable`), `procdump` and
  `collect_procs`.
- `xvsim.syscall`: `SyscallTable` (`register` and `dispatch`), `TrapFrame`,
  the `SysCall` numbers and `argint`.
- `xvsim.cpu`: `Cpu`, with an interrupt flag, nested `pushcli`/`popcli` and
  `CpuMode`, and `SpinLock`, which is also a context manager.
- `xvsim.pic`: `InterruptController`, with 32 sources, `enable`, `disable`,
  `raise_irq` and `dispatch`.
- `xvsim.timer`: `Timer`, a periodic tick counter driven by the interrupt
  controller.
- `xvsim.uart`: `Uart`, a serial port whose received bytes can feed a
  console, and `baud_divisors`.

## Examples

```python
from xvsim.buddy import BuddyAllocator, get_order

heap = BuddyAllocator(0x100000, 0x200000)
block = heap.kmalloc(get_order(300))   # a 512-byte block (order 9)
heap.kfree(block, get_order(300))
```

```python
from xvsim.console import Console, format_message

format_message("pid %d at %x: %s", 3, 255, "init")
# 'pid 3 at ff: init'

echoed = []
console = Console(echoed.append)
console.intr("ls\n")
console.read(100)
# b'ls\n'
```

```python
from xvsim.pipe import Pipe

pipe = Pipe()
pipe.write(b"hello")   # 5
pipe.read(16)          # b'hello'
```

## Errors

The kernel would treat some errors as fatal, such as a double free, an
out-of-range order, releasing a buffer that is not held, or a transaction
that is too large. Here these raise exceptions instead:

- `AllocatorError`
- `DiskError`
- `BufferCacheError`
- `LogError`
- `FileSystemError`
- `PipeError`
- `ProcError`
- `CpuError`

## What it does not do

- **Program images:** there is no loader for program images and no
  virtual memory or page tables.
- **Processes:** `ProcTable` does not switch contexts. It tracks process
  states, and you drive the scheduling by iterating `runnable()`.
- **System calls:** `SyscallTable` comes empty. You register a handler
  yourself for each call number.
- **Disk images:** there is no tool for building a file system image.
  `MemDisk` takes an image you prepare, and `Log` and `FileSystem` expect a
  valid super block in sector 1.
- **Command line:** the package has no command-line interface.

## Running the tests

```
pip install -e ".[test]"
pytest
```