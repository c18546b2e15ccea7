# vdens

`vdens` carries Ethernet frames over DNS. The client puts each outgoing
frame into one or more query names below a tunnel domain and keeps about ten
queries waiting at the name server. The server listens on UDP port 53. It
decodes the query names, reassembles the frames, and writes them out. It
sends return traffic back as TXT answers to the waiting queries.

Both ends exchange frames with the local side over standard input and
standard output. Each frame starts with its length, written as two bytes in
network byte order. The length prefix is kept as part of the frame when it
crosses the tunnel.

## Installing

```
pip install .
```

## Running

Start the server on the host that is authoritative for the tunnel domain.
Binding port 53 usually needs root.

```
vdens tun.example.com
vdens -i 192.0.2.10 tun.example.com
```

Start the client and point it at a name server that reaches the server:

```
vdens -c 192.0.2.1 tun.example.com
```

Options:

- `-c DNSSERVER`: run in client mode and send queries to port 53 of the IPv4
  address `DNSSERVER`. Without this option the program runs as a server.
- `-i IP`: in server mode, bind port 53 on this IPv4 address only. The
  default is all local addresses.
- `-g`: log debug messages.
- `-h`: print the usage text.
- `-D`: accepted, but the program logs a warning and stays in the
  foreground.
- `-s VDESOCK`: accepted, but the program reports that it cannot attach to
  the socket and exits with status 1.

Usage errors exit with status 64. Failing to open the name server socket
exits with status 1. The program stops when standard input closes.

## What it does not do

- It does not connect to a virtual switch socket. Frames come and go only
  through standard input and output, so use a separate tool to connect those
  streams to a switch.
- It does not detach from the terminal.

## Library use

These modules can also be used on their own:

- `vdens.dns`: builds and parses DNS packets that carry TXT questions and
  answers (`DnsPacket`, `ResourceRecord`, `PacketType`, `DnsError`). It also
  has the label and TXT helpers `encode_labels`, `decompress_label`,
  `data_to_txt`, `txt_to_data` and `label_to_data`. `TunnelDomain` places
  encoded data in names under the tunnel domain, reads it back out, and
  reports how much payload still fits in a packet.
- `vdens.encode`: `encode` and `decode` use a base-64 variant whose alphabet
  is valid in DNS labels. The first character of the encoded text records
  how many padding bytes were added.
- `vdens.header`: `NstxHeader` packs and unpacks the four-byte fragment
  header, which holds the magic byte, sequence number, channel, packet id
  and flags.
- `vdens.pstack`: `Reassembler` collects fragments by packet id and returns
  a packet once all its fragments have arrived. It drops incomplete packets
  after a timeout.
- `vdens.queue`: `QueryQueue` is a first-in first-out queue of outstanding
  query ids (`QueueItem`). Each id has a deadline.
- `vdens.vde_io`: `TunnelIO` moves frames between the local stream and the
  UDP name server socket. `StreamFramer` splits a byte stream into
  length-prefixed frames.
- `vdens.cli`: `Client` and `Server` hold the tunnel logic for each side.
  `SendQueue` cuts outgoing packets into fragments. `main` is the command.
- `vdens.util`: `checksum` computes the XOR of a byte string. `dump_to_file`
  writes bytes to a file that only its owner can read.
- `vdens.bitarray`: `BitArray` and `CountedBitArray` are fixed-size bit
  sets. `CountedBitArray` keeps a running count of its members.
- `vdens.iplog`: `IpLogger` inspects Ethernet frames, including VLAN-tagged
  ones, and reports each IPv4 or IPv6 source address the first time it
  appears. `hash4` and `hash6` give an address's table slot. `caller_host`
  reads the client address from `SSH_CLIENT`.

```python
from vdens.encode import encode, decode

assert decode(encode(b"frame")) == b"frame"
```