"""
Readers and writers for the binary containers the assembler produces:
BSD static archives, Mach-O universal binaries, and the Mach-O symbol tables
needed to index archive members.
"""
